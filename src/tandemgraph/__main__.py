from __future__ import annotations

from .listing import main


if __name__ == "__main__":
    main()
