import sys

from app import main


if __name__ == "__main__":
    # ensures main() is called only when the script is executed directly
    sys.exit(main())
