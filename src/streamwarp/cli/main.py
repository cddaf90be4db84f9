"""streamwarp command line entry point"""
import click

from streamwarp import __version__
from streamwarp.cli.scrape import scrape_command


@click.group()
@click.version_option(__version__, prog_name='streamwarp')
def cli():
    """streamwarp - scrape channel pages into M3U/JSON playlists"""
    pass


cli.add_command(scrape_command)


def main():
    cli()


if __name__ == '__main__':
    main()
