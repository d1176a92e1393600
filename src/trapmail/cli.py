"""sendmail-compatible command line for trapmail.

Options are recorded with each mail but otherwise ignored; the message is
read from stdin and stored as-is. See `MailStore` for where it ends up.
"""

import sys

import click
from click import argument, echo, option
from dotenv import load_dotenv

from .errors import TrapmailError
from .mail import CliOptions, Mail
from .store import MailStore


def err(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def dump_mail(path: str) -> None:
    """Print a stored mail in human-readable form."""
    try:
        mail = Mail.load(path)
    except TrapmailError as e:
        raise click.ClickException(str(e))
    echo(str(mail))


@click.command()
@option('--debug', is_flag=True, help="Print trapmail-specific debug info to stderr")
@option('-i', 'ignore_dots', is_flag=True, help="Ignore dots alone on lines by themselves in incoming message")
@option('-t', 'inline_recipients', is_flag=True, help="Read message for recipient list")
@option('-f', '-r', 'sender', help="Envelope sender address")
@option('-F', 'full_name', help="Sender full name")
@option('-o', 'options', multiple=True, help="sendmail option (e.g. -oi), recorded with the mail")
@option('--store', type=click.Path(file_okay=False), help="Store directory (default: $TRAPMAIL_STORE, or /tmp)")
@option('--dump', type=click.Path(dir_okay=False), help="Ignore everything else and dump the contents of a mail file")
@argument('addresses', nargs=-1)
def main(
    debug: bool,
    ignore_dots: bool,
    inline_recipients: bool,
    sender: str | None,
    full_name: str | None,
    options: tuple[str, ...],
    store: str | None,
    dump: str | None,
    addresses: tuple[str, ...],
):
    """Capture a mail from stdin, like sendmail would send it."""
    if dump:
        dump_mail(dump)
        return

    # `-oi` is the long-standing spelling of `-i`
    ignore_dots = ignore_dots or "i" in options
    if not ignore_dots:
        raise click.UsageError("ignore dots (`-i`) was not set, but the reverse is not supported")
    if not inline_recipients:
        raise click.UsageError("inline recipients (`-t`) was not set, but the reverse is not supported")

    cli_options = CliOptions(
        debug=debug,
        ignore_dots=ignore_dots,
        inline_recipients=inline_recipients,
        addresses=addresses,
        sender=sender,
        full_name=full_name,
        options=options,
        store=store,
    )

    load_dotenv()
    mail_store = MailStore(store) if store else MailStore.from_env()

    # All parsing is left to whoever inspects the store
    try:
        raw_body = click.get_binary_stream("stdin").read()
    except OSError as e:
        raise click.ClickException(f"Could not read mail from stdin: {e}")

    mail = Mail.new(cli_options, raw_body)
    try:
        path = mail_store.add(mail)
    except TrapmailError as e:
        raise click.ClickException(str(e))

    if debug:
        err(f'Mail written to "{path}"')
