"""Allow ``python -m uni_flow``."""

from uni_flow.main import uni

if __name__ == "__main__":  # pragma: no cover
    uni()
