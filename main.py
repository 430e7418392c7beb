"""Campaign cost report entrypoint."""

from __future__ import annotations

from cost_attribution.application import run_reporting_pipeline


def main() -> None:
    run_reporting_pipeline()


if __name__ == "__main__":
    main()
