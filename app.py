# app.py — Entry point
import argparse
import logging

from config import DEFAULT_ADDRESS, OFFLINE, LOG_LEVEL


def main(argv=None):
    ap = argparse.ArgumentParser(description="Drone swarm map simulator")
    ap.add_argument("--address", default=DEFAULT_ADDRESS, help="reference street address")
    ap.add_argument("--offline", action="store_true", default=OFFLINE,
                    help="skip geocoding and tile downloads")
    ap.add_argument("--log-level", default=LOG_LEVEL)
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    from ui.main_window import MainWindow
    app = MainWindow(address=args.address, offline=args.offline)
    app.mainloop()

if __name__ == "__main__":
    main()
