"""
Runs the command-line interface: ``python -m popoki``.
"""

from popoki import main

main()
