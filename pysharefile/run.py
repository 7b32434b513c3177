import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from pysharefile.api import (
    AuthClient,
    AuthError,
    ShareFileClient,
    ShareFileError,
    Uploader,
    UserCreateRequest,
)
from pysharefile.api.models import ChildItem, Item

app = typer.Typer(help="Work with ShareFile items and client users.")


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn library errors into a message and exit status 1."""
    try:
        yield
    except (AuthError, ShareFileError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e


def _client(ctx: typer.Context) -> ShareFileClient:
    return ShareFileClient(ctx.obj["auth"])


def _print_item(item: Item | ChildItem) -> None:
    print(f"{item.id} {item.creation_date} {item.name}")


def _print_tree(item: Item) -> None:
    _print_item(item)
    for child in item.children:
        _print_item(child)


@app.callback()
def main(
    ctx: typer.Context,
    config: str = typer.Option(
        None, envvar="SHAREFILE_CONFIG", help="Session file location"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests"),
):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    with _reported_errors():
        ctx.obj["auth"] = AuthClient.from_config(config)


@app.command()
def login(
    ctx: typer.Context,
    hostname: str = typer.Option(..., envvar="SHAREFILE_HOSTNAME"),
    client_id: str = typer.Option(..., envvar="SHAREFILE_CLIENT_ID"),
    client_secret: str = typer.Option(..., envvar="SHAREFILE_CLIENT_SECRET"),
    username: str = typer.Option(..., envvar="SHAREFILE_USERNAME"),
    password: str = typer.Option(..., envvar="SHAREFILE_PASSWORD", hide_input=True),
):
    """Authenticate and store the session."""
    auth: AuthClient = ctx.obj["auth"]
    with _reported_errors():
        session = auth.authenticate(
            hostname, client_id, client_secret, username, password
        )
        auth.save_session()
    print(f"Logged in to {session.hostname}")


@app.command()
def logout(ctx: typer.Context):
    """Forget the stored session."""
    with _reported_errors():
        ctx.obj["auth"].clear_session()


@app.command()
def root(
    ctx: typer.Context,
    children: bool = typer.Option(False, "--children", "-c", help="Include children"),
):
    with _reported_errors():
        _print_tree(_client(ctx).get_root(children=children))


@app.command()
def item(ctx: typer.Context, item_id: str):
    with _reported_errors():
        _print_item(_client(ctx).get_item(item_id))


@app.command()
def folder(ctx: typer.Context, item_id: str):
    """Show a folder with the id, name and creation date of its children."""
    with _reported_errors():
        _print_tree(_client(ctx).get_folder_with_query_parameters(item_id))


@app.command()
def ls(ctx: typer.Context, item_id: str):
    with _reported_errors():
        for child in _client(ctx).get_children(item_id):
            _print_item(child)


@app.command()
def mkdir(ctx: typer.Context, parent_id: str, name: str, description: str = ""):
    with _reported_errors():
        created = _client(ctx).create_folder(parent_id, name, description)
    print(f"Created folder {created.id}")


@app.command()
def update(ctx: typer.Context, item_id: str, name: str, description: str = ""):
    with _reported_errors():
        updated = _client(ctx).update_item(item_id, name, description)
    print(f"Updated {updated.id}")


@app.command()
def rm(ctx: typer.Context, item_id: str):
    with _reported_errors():
        _client(ctx).delete_item(item_id)
    print(f"Deleted {item_id}")


@app.command()
def download(ctx: typer.Context, item_id: str, dest: Path):
    """Download an item. Folders arrive as zip archives."""
    with _reported_errors():
        path = _client(ctx).download_item(item_id, dest)
    print(f"Saved {path}")


@app.command()
def upload(ctx: typer.Context, path: Path, folder_id: str):
    with _reported_errors():
        status = Uploader(_client(ctx)).upload_file(path, folder_id)
    print(f"Upload finished with status {status}")


@app.command()
def clients(ctx: typer.Context):
    with _reported_errors():
        for user in _client(ctx).get_clients():
            print(f"{user.id} {user.email}")


@app.command("create-client")
def create_client(
    ctx: typer.Context,
    email: str,
    first_name: str,
    last_name: str,
    company: str = "",
    password: str = typer.Option(..., prompt=True, hide_input=True),
    can_reset_password: bool = True,
    can_view_my_settings: bool = True,
):
    user = UserCreateRequest(
        email=email,
        first_name=first_name,
        last_name=last_name,
        company=company,
        client_password=password,
        can_reset_password=can_reset_password,
        can_view_my_settings=can_view_my_settings,
    )
    with _reported_errors():
        created = _client(ctx).create_client(user)
    print(f"Created Client {created.id}")


if __name__ == "__main__":
    app()
