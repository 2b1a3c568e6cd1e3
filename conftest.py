import os
import sys

# Make the top-level packages (api, common, recommender, stores) importable in tests
ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
