"""
Static File Server Example

Serves the `public` directory next to this script, without directory
listings, on port 8080.

Usage:
    python fileserver.py

Test with:
    http://localhost:8080/             # Served through public/index.html
    http://localhost:8080/missing.html # 404
"""

import sys
from pathlib import Path

from fileserve import run
from fileserve.utils.logging import info

if __name__ == "__main__":
	root = Path(__file__).parent / "public"
	root.mkdir(exist_ok=True)
	if not (index := root / "index.html").exists():
		index.write_text("<h1>Hi</h1>")
	info("Starting static file server", Root=str(root))
	sys.exit(run(str(root), port=8080, listing=False))

# EOF
