"""Allow ``python -m wallet_hub``."""
from .cli import main

if __name__ == "__main__":
    main()
