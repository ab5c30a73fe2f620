import sys

from collisionbaker.cli import main

sys.exit(main())
