"""
Allow running the package directly: python -m mandelzoom
"""

from argparse import ArgumentParser

from .colormaps import list_colormap_names
from .config import load_settings, setup_logging


def build_parser():
    parser = ArgumentParser(
        prog='mandelzoom',
        description='Explore the Mandelbrot set by dragging zoom rectangles.',
    )
    parser.add_argument('--width', type=int,
                        help='window width in pixels')
    parser.add_argument('--height', type=int,
                        help='window height in pixels')
    parser.add_argument('--max-iter', dest='max_iter', type=int,
                        help='maximum iteration count per point')
    parser.add_argument('--colormap', choices=list_colormap_names(),
                        help='palette used to color escape counts')
    parser.add_argument('--bounds', type=float, nargs=4,
                        metavar=('XMIN', 'XMAX', 'YMIN', 'YMAX'),
                        help='initial region of the complex plane')
    parser.add_argument('--settings', type=str,
                        help='JSON file overriding the default settings')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='log debug messages')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.settings).merged(
            width=args.width,
            height=args.height,
            max_iter=args.max_iter,
            colormap=args.colormap,
            bounds=args.bounds,
            log_level='DEBUG' if args.verbose else None,
        ).validate()
    except ValueError as e:
        parser.error(str(e))

    setup_logging(settings.log_level)

    from .app import run
    run(settings)


if __name__ == "__main__":
    main()
