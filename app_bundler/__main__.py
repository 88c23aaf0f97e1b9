import sys

from app_bundler.cli import main

sys.exit(main())
