"""
phantm command line

Usage:
  phantm env add dev --host localhost --database app --user postgres
  phantm use ./schema.sql
  phantm test
  phantm create --name account_acme -y
  phantm create-bulk 10 -y
  phantm list --status available
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from phantm import __version__
from phantm.config import settings
from phantm.core.exceptions import NotFoundError, PhantmError, ValidationError
from phantm.core.sql_template import analyze, validate_structure
from phantm.database import database_scope, verify_connection, verify_pool_table
from phantm.logging_config import configure_logging
from phantm.schemas.environment import EnvironmentConfig
from phantm.schemas.schema_pool import SchemaRecord
from phantm.services.environment_store import EnvironmentStore
from phantm.services.schema_pool_registry import SchemaPoolRegistry
from phantm.services.schema_provisioner import (
    ProvisionResult,
    SchemaProvisioner,
    StructureReport,
)
from phantm.services.template_source import EnvironmentTemplateSource

logger = logging.getLogger(__name__)

DIVIDER = "-" * 60


def _plural(count: int, word: str = "schema") -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _fmt_time(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def confirm(message: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question. Empty answer means yes."""
    if assume_yes:
        return True
    try:
        answer = input(f"{message} [Y/n] ").strip().lower()
    except EOFError:
        return False
    return answer in ("", "y", "yes")


def print_record(record: SchemaRecord, indent: str = "  ") -> None:
    print(f"{indent}Name:       {record.schema_name}")
    print(f"{indent}ID:         {record.schema_id}")
    print(f"{indent}Status:     {record.status.value}")
    print(f"{indent}Account ID: {record.account_id or 'N/A'}")
    print(f"{indent}Created:    {_fmt_time(record.created_at)}")
    if record.allocated_at:
        print(f"{indent}Allocated:  {_fmt_time(record.allocated_at)}")
    if record.updated_at:
        print(f"{indent}Updated:    {_fmt_time(record.updated_at)}")


def print_structure(report: StructureReport) -> None:
    if report.is_valid:
        print(f"✓ Schema structure validated ({len(report.actual_tables)} tables)")
    else:
        print(f"! Schema structure has issues, missing tables: {', '.join(report.missing_tables)}")


async def _check_database(session_factory) -> None:
    await verify_connection(session_factory)
    await verify_pool_table(session_factory)


# ==================== Provisioning ====================

async def cmd_create(args: argparse.Namespace, store: EnvironmentStore) -> int:
    env_name, env = store.resolve(args.env)
    source = EnvironmentTemplateSource(store, env_name)

    async with database_scope(env) as session_factory:
        await _check_database(session_factory)
        print(f"✓ Connected to {env_name} ({env.host}:{env.port}/{env.database})")

        question = (
            "This will recreate the schema if it exists. Continue?"
            if args.force else "Create a new schema?"
        )
        if not confirm(question, args.yes):
            print("Operation cancelled")
            return 0

        provisioner = SchemaProvisioner(session_factory, source)
        result = await provisioner.provision(force=args.force, custom_name=args.name)

        if not result.success:
            print(f"✗ Schema creation failed: {result.error}", file=sys.stderr)
            return 1

        print("✓ Schema creation completed successfully")
        print("Schema Details:")
        print(f"  Name: {result.schema_name}")
        print(f"  ID:   {result.schema_id}")

        print_structure(await provisioner.inspect_structure(result.schema_name))
    return 0


async def cmd_create_bulk(args: argparse.Namespace, store: EnvironmentStore) -> int:
    count = args.count
    if not 1 <= count <= settings.BULK_MAX_COUNT:
        raise ValidationError(
            f"Count must be between 1 and {settings.BULK_MAX_COUNT}, got {count}"
        )

    env_name, env = store.resolve(args.env)
    source = EnvironmentTemplateSource(store, env_name)

    async with database_scope(env) as session_factory:
        await _check_database(session_factory)
        print(f"✓ Connected to {env_name} ({env.host}:{env.port}/{env.database})")

        if not confirm(f"Create {_plural(count, 'new schema')}?", args.yes):
            print("Operation cancelled")
            return 0

        def report(index: int, total: int, item: ProvisionResult) -> None:
            if item.success:
                print(f"[{index}/{total}] ✓ {item.schema_name} created (ID: {item.schema_id})")
            else:
                print(f"[{index}/{total}] ✗ Failed: {item.error}")

        provisioner = SchemaProvisioner(session_factory, source)
        result = await provisioner.bulk_provision(count, progress=report)

    print(DIVIDER)
    print(f"Successfully created: {_plural(len(result.successful))}")
    for index, item in enumerate(result.successful, 1):
        print(f"  {index}. {item.schema_name}")

    if result.failed:
        print(f"Failed: {_plural(len(result.failed))}")
        for index, item in enumerate(result.failed, 1):
            print(f"  {index}. {item.schema_name}: {item.error}")

    return 0 if result.success else 1


# ==================== Registry ====================

async def cmd_list(args: argparse.Namespace, store: EnvironmentStore) -> int:
    _, env = store.resolve(args.env)

    async with database_scope(env) as session_factory:
        await verify_connection(session_factory)
        async with session_factory() as db:
            records = await SchemaPoolRegistry(db).list_schemas(args.status)

    if not records:
        print("No schemas found in the pool")
        return 0

    for index, record in enumerate(records, 1):
        print(f"{index}. {record.schema_name}")
        print_record(record, indent="   ")
    print(DIVIDER)
    print(f"Total: {_plural(len(records))}")
    return 0


async def cmd_info(args: argparse.Namespace, store: EnvironmentStore) -> int:
    env_name, env = store.resolve(args.env)

    async with database_scope(env) as session_factory:
        await verify_connection(session_factory)
        async with session_factory() as db:
            record = await SchemaPoolRegistry(db).get(args.schema_name)

        if record is None:
            raise NotFoundError(f"Schema '{args.schema_name}' not found in pool")

        print("Schema Details:")
        print_record(record)

        provisioner = SchemaProvisioner(session_factory, EnvironmentTemplateSource(store, env_name))
        print_structure(await provisioner.inspect_structure(args.schema_name))
    return 0


async def cmd_allocate(args: argparse.Namespace, store: EnvironmentStore) -> int:
    _, env = store.resolve(args.env)

    async with database_scope(env) as session_factory:
        async with session_factory() as db:
            try:
                record = await SchemaPoolRegistry(db).allocate(args.schema_name, args.account_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    print(f"✓ Schema {record.schema_name} allocated to {record.account_id}")
    return 0


async def cmd_remove(args: argparse.Namespace, store: EnvironmentStore) -> int:
    _, env = store.resolve(args.env)

    mode = "permanently remove the registry row of" if args.hard else "mark as DELETED"
    if not confirm(f"This will {mode} schema {args.schema_name}. Continue?", args.yes):
        print("Operation cancelled")
        return 0

    async with database_scope(env) as session_factory:
        async with session_factory() as db:
            try:
                await SchemaPoolRegistry(db).remove(args.schema_name, hard=args.hard)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    print(f"✓ Schema {args.schema_name} {'removed from pool' if args.hard else 'marked as DELETED'}")
    return 0


# ==================== Template & connection ====================

async def cmd_validate(args: argparse.Namespace, store: EnvironmentStore) -> int:
    env_name, _ = store.resolve(args.env)
    source = EnvironmentTemplateSource(store, env_name)

    template = source.load()
    print(f"✓ Template loaded from {source.describe()}")
    validate_structure(template)

    stats = analyze(template)
    print("✓ Base schema template is valid")
    print("Template Statistics:")
    print(f"  Types:        {stats.type_count}")
    print(f"  Tables:       {stats.table_count}")
    print(f"  Indexes:      {stats.index_count}")
    print(f"  Foreign keys: {stats.foreign_key_count}")
    if stats.authorization:
        print(f"  Owner:        {stats.authorization}")
    return 0


async def cmd_test(args: argparse.Namespace, store: EnvironmentStore) -> int:
    env_name, env = store.resolve(args.env)

    async with database_scope(env) as session_factory:
        await verify_connection(session_factory)
        print("✓ Database connection successful")
        await verify_pool_table(session_factory)
        print("✓ Common schema and schema_pool table verified")

    print("All checks passed! Database is ready.")
    print("Connection Details:")
    print(f"  Environment: {env_name}")
    print(f"  Host:        {env.host}")
    print(f"  Port:        {env.port}")
    print(f"  Database:    {env.database}")
    print(f"  User:        {env.user}")
    print(f"  SSL:         {'Enabled' if env.ssl else 'Disabled'}")
    return 0


# ==================== Environments ====================

def cmd_env_add(args: argparse.Namespace, store: EnvironmentStore) -> int:
    config = EnvironmentConfig(
        host=args.host,
        port=args.port,
        database=args.database,
        user=args.user,
        password=args.password or "",
        ssl=args.ssl,
    )
    store.save_environment(args.name, config)
    print(f"✓ Environment '{args.name}' saved")
    if store.get_active_environment() == args.name:
        print(f"  '{args.name}' is the active environment")
    return 0


def cmd_env_list(args: argparse.Namespace, store: EnvironmentStore) -> int:
    environments = store.list_environments()
    if not environments:
        print("No environments configured")
        return 0

    active = store.get_active_environment()
    for name, env in environments.items():
        marker = "*" if name == active else " "
        print(f"{marker} {name}  {env.user}@{env.host}:{env.port}/{env.database}")
    return 0


def cmd_env_use(args: argparse.Namespace, store: EnvironmentStore) -> int:
    store.set_active_environment(args.name)
    print(f"✓ Active environment: {args.name}")
    return 0


def cmd_env_remove(args: argparse.Namespace, store: EnvironmentStore) -> int:
    store.delete_environment(args.name)
    print(f"✓ Environment '{args.name}' removed")
    active = store.get_active_environment()
    print(f"  Active environment: {active or 'none'}")
    return 0


def cmd_env_show(args: argparse.Namespace, store: EnvironmentStore) -> int:
    name, env = store.resolve(args.name or args.env)
    print(f"Environment: {name}")
    print(f"  Host:     {env.host}")
    print(f"  Port:     {env.port}")
    print(f"  Database: {env.database}")
    print(f"  User:     {env.user}")
    print(f"  Password: {'********' if env.password else '(none)'}")
    print(f"  SSL:      {'Enabled' if env.ssl else 'Disabled'}")
    print(f"  Template: {env.template_path or '(none)'}")
    return 0


def cmd_use(args: argparse.Namespace, store: EnvironmentStore) -> int:
    env_name, _ = store.resolve(args.env)
    if args.clear:
        store.clear_template_path(env_name)
        print(f"✓ Template cleared for environment '{env_name}'")
        return 0
    if not args.path:
        raise ValidationError("Give a template path or --clear")

    path = store.set_template_path(env_name, args.path)
    print(f"✓ Template for environment '{env_name}' set to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phantm",
        description="Provision tenant PostgreSQL schemas from a SQL template",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--env", "-e", help="Environment to run against (default: active)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create", help="Create a new schema from the template")
    p.add_argument("-f", "--force", action="store_true", help="Recreate if the schema already exists")
    p.add_argument("-n", "--name", help="Custom schema name (must start with 'account_')")
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    p.set_defaults(handler=cmd_create)

    p = sub.add_parser("create-bulk", help="Create multiple schemas at once")
    p.add_argument("count", type=int, help=f"Number of schemas (1-{settings.BULK_MAX_COUNT})")
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    p.set_defaults(handler=cmd_create_bulk)

    p = sub.add_parser("list", help="List schemas in the pool")
    p.add_argument("-s", "--status", help="Filter by status (AVAILABLE, ALLOCATED, DELETED)")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("info", help="Show one schema and check its structure")
    p.add_argument("schema_name")
    p.set_defaults(handler=cmd_info)

    p = sub.add_parser("allocate", help="Allocate an AVAILABLE schema to an account")
    p.add_argument("schema_name")
    p.add_argument("account_id")
    p.set_defaults(handler=cmd_allocate)

    p = sub.add_parser("remove", help="Delete a schema from the pool")
    p.add_argument("schema_name")
    p.add_argument("--hard", action="store_true", help="Remove the row instead of marking it DELETED")
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    p.set_defaults(handler=cmd_remove)

    p = sub.add_parser("validate", help="Validate the environment's schema template")
    p.set_defaults(handler=cmd_validate)

    p = sub.add_parser("test", help="Test the database connection and setup")
    p.set_defaults(handler=cmd_test)

    p = sub.add_parser("use", help="Set the schema template for the environment")
    p.add_argument("path", nargs="?", help="Path to the SQL template")
    p.add_argument("--clear", action="store_true", help="Remove the configured template")
    p.set_defaults(handler=cmd_use)

    env_parser = sub.add_parser("env", help="Manage database environments")
    env_sub = env_parser.add_subparsers(dest="env_command", required=True)

    p = env_sub.add_parser("add", help="Add or update an environment")
    p.add_argument("name")
    p.add_argument("--host", default=settings.DB_HOST, required=settings.DB_HOST is None)
    p.add_argument("--port", type=int, default=settings.DB_PORT)
    p.add_argument("--database", default=settings.DB_NAME, required=settings.DB_NAME is None)
    p.add_argument("--user", default=settings.DB_USER, required=settings.DB_USER is None)
    p.add_argument("--password", default=settings.DB_PASSWORD)
    p.add_argument("--ssl", action="store_true", default=settings.DB_SSL)
    p.set_defaults(handler=cmd_env_add)

    p = env_sub.add_parser("list", help="List environments")
    p.set_defaults(handler=cmd_env_list)

    p = env_sub.add_parser("use", help="Switch the active environment")
    p.add_argument("name")
    p.set_defaults(handler=cmd_env_use)

    p = env_sub.add_parser("remove", help="Remove an environment")
    p.add_argument("name")
    p.set_defaults(handler=cmd_env_remove)

    p = env_sub.add_parser("show", help="Show environment details")
    p.add_argument("name", nargs="?")
    p.set_defaults(handler=cmd_env_show)

    return parser


def run(args: argparse.Namespace, store: Optional[EnvironmentStore] = None) -> int:
    """Dispatch a parsed command and map errors to an exit code."""
    store = store or EnvironmentStore()
    try:
        outcome = args.handler(args, store)
        if asyncio.iscoroutine(outcome):
            outcome = asyncio.run(outcome)
        return outcome
    except PhantmError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"✗ Error: {e}", file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        logger.error(f"{args.command} failed with a database error: {e}")
        print(f"✗ Database error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = {0: None, 1: "INFO"}.get(args.verbose, "DEBUG")
    configure_logging(level=level)

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
