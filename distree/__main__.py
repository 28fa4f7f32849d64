import sys

from distree.cli import main

sys.exit(main())
