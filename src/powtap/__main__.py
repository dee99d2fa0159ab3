"""Allow running powtap with ``python -m powtap``."""

from powtap.main import main

main()
