import sys

from chat_core.cli.app import main

if __name__ == "__main__":
    sys.exit(main())
