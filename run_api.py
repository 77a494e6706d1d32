"""Small runner to start the operator API with the project root on sys.path.

Use when the package is not installed in this environment.
"""

import logging
import os
import sys

# ensure project root is on sys.path so `import curtaincall` works
ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from curtaincall.api import create_app

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(host="127.0.0.1", port=int(os.environ.get("PORT", "5000")), debug=False)
