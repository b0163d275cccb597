"""Allow ``python -m boinc_exporter``."""

from boinc_exporter.cli.main import main

if __name__ == "__main__":
    main()
