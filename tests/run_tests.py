"""Test runner script."""
import unittest
import sys
from pathlib import Path

# Add src and tests directories to path
tests_dir = Path(__file__).parent
sys.path.insert(0, str(tests_dir.parent / "src"))
sys.path.insert(0, str(tests_dir))

if __name__ == "__main__":
    # Discover and run all tests
    loader = unittest.TestLoader()
    suite = loader.discover(str(tests_dir), pattern="test_*.py")

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    # Exit with error code if tests failed
    sys.exit(0 if result.wasSuccessful() else 1)
