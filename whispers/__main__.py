#!/usr/bin/env python3
"""
Whispers - anonymous, emotion-tagged notes from the people around you

Usage:
    python -m whispers [options]

Options:
    --emotion NAME    Only show whispers with this emotion (melancholy, joy, anxiety, peace)
    --lat LAT         Latitude to use instead of the device location
    --lon LON         Longitude to use instead of the device location
    --map             Serve a live map of the feed in the browser
    --html FILE       Save a static map of the feed to an HTML file
    --post TEXT       Share a whisper at the current location (use with --emotion)
    --show ID         Show a single whisper in full
    --api URL         Base URL of the whispers service
    --log FILE        Append log output to FILE
    --no-browser      Serve --map without opening a browser
    -v, --verbose     Echo log output to the terminal
"""

import argparse
import asyncio
import sys

from .app import WhispersApp
from .models import Emotion


def _emotion(value: str) -> Emotion:
    try:
        return Emotion.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def main():
    parser = argparse.ArgumentParser(
        description="Whispers - anonymous, emotion-tagged notes from the people around you"
    )
    parser.add_argument("--emotion", type=_emotion, metavar="NAME",
                        help="Filter by emotion (melancholy, joy, anxiety, peace)")
    parser.add_argument("--lat", type=float, metavar="LAT",
                        help="Latitude (instead of device location)")
    parser.add_argument("--lon", type=float, metavar="LON",
                        help="Longitude (instead of device location)")
    parser.add_argument("--map", action="store_true",
                        help="Serve a live map of the feed in the browser")
    parser.add_argument("--html", metavar="FILE",
                        help="Save a static map of the feed to an HTML file")
    parser.add_argument("--post", metavar="TEXT",
                        help="Share a whisper at the current location")
    parser.add_argument("--show", type=int, metavar="ID",
                        help="Show a single whisper in full")
    parser.add_argument("--api", metavar="URL",
                        help="Base URL of the whispers service")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path")
    parser.add_argument("--no-browser", action="store_true",
                        help="Do not open a browser for --map")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Echo log output to the terminal")

    args = parser.parse_args()

    # Validate lat/lon - must provide both or neither
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be used together")

    if args.post is not None and args.emotion is None:
        parser.error("--post requires --emotion")

    if args.post is not None and (args.map or args.show is not None):
        parser.error("--post cannot be combined with --map or --show")

    start_location = (args.lat, args.lon) if args.lat is not None else None
    app = WhispersApp(
        log_path=args.log,
        api_url=args.api,
        start_location=start_location,
        html_output=args.html,
        open_browser=not args.no_browser,
        verbose=args.verbose,
    )

    try:
        if args.show is not None:
            status = 0 if asyncio.run(app.show_detail(args.show)) else 1
        elif args.post is not None:
            status = asyncio.run(app.post(args.post, args.emotion))
        else:
            status = asyncio.run(app.run_feed(emotion=args.emotion, live_map=args.map))
    except KeyboardInterrupt:
        status = 0
    finally:
        app.close()

    sys.exit(status)


if __name__ == "__main__":
    main()
