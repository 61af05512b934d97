"""Dynamic Model Platform CLI tool (dynctl)."""

import json
from typing import List

import typer

app = typer.Typer(name="dynctl", help="Dynamic Model Platform CLI")
db_app = typer.Typer(help="Database management commands")
models_app = typer.Typer(help="Model definition commands")
records_app = typer.Typer(help="Record maintenance commands")
app.add_typer(db_app, name="db")
app.add_typer(models_app, name="models")
app.add_typer(records_app, name="records")


def _load_registry():
    """Registry filled from the configured definition store."""
    from backend.db.session import init_db
    from backend.services.model_registry import model_registry

    init_db()
    model_registry.load()
    return model_registry


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    from backend.db.session import init_db

    init_db()
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed(
    role: List[str] = typer.Option([], "--role", help="Extra role to create (repeatable)"),
):
    """Seed roles and the admin user."""
    from backend.db.session import SessionLocal, init_db
    from backend.db.seeds.seed_roles import seed_roles
    from backend.db.seeds.seed_admin import seed_admin

    init_db()
    db = SessionLocal()
    try:
        seed_roles(db, role)
        seed_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@models_app.command("list")
def models_list():
    """List published models."""
    model_registry = _load_registry()
    for definition in sorted(model_registry.list(), key=lambda d: d.name):
        roles = ", ".join(f"{r}={'/'.join(p.value for p in perms)}" for r, perms in definition.rbac.items())
        typer.echo(
            f"  {definition.name} -> /api/{definition.path} "
            f"({len(definition.fields)} fields; {roles})"
        )


@models_app.command("publish")
def models_publish(
    file_path: str = typer.Argument(..., help="JSON file holding a model definition"),
):
    """Publish a model definition from a JSON file.

    A running server picks it up on its next start.
    """
    from backend.core.exceptions import ValidationError

    with open(file_path, encoding="utf-8") as f:
        payload = json.load(f)
    model_registry = _load_registry()
    try:
        definition = model_registry.publish(payload)
    except ValidationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✅ Published {definition.name} at /api/{definition.path}")


@models_app.command("remove")
def models_remove(name: str = typer.Argument(..., help="Model name")):
    """Delete a model definition (records are kept)."""
    from backend.core.exceptions import ResourceNotFoundError

    model_registry = _load_registry()
    try:
        model_registry.remove(name)
    except ResourceNotFoundError:
        typer.echo(f"❌ Model {name} not found", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✅ Removed {name}")


@records_app.command("purge-orphans")
def purge_orphans(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only report what would be deleted"),
):
    """Delete records whose model is no longer published."""
    from backend.db.session import SessionLocal
    from backend.services.record_store import RecordStore

    model_registry = _load_registry()
    db = SessionLocal()
    try:
        store = RecordStore(db)
        orphans = store.orphaned_counts(model_registry.names())
        if not orphans:
            typer.echo("No orphaned records")
            return
        for model_name, count in sorted(orphans.items()):
            if dry_run:
                typer.echo(f"  {model_name}: {count} records")
            else:
                store.purge(model_name)
                typer.echo(f"✅ Purged {count} records of {model_name}")
    finally:
        db.close()


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("backend.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
