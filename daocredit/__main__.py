"""Command line entry point for the contribution ledger"""
import argparse
import json
import logging
import os
import sys
from typing import Any, List, Optional, Tuple

from daocredit.client import ContributionClient
from daocredit.config import Settings, settings
from daocredit.db import Database
from daocredit.db_config import DatabaseManager
from daocredit.errors import DaoCreditError
from daocredit.models.contribution import ContributionCategory, ContributionDraft
from daocredit.models.status import TransactionStatus
from daocredit.services.fhe import FHECapability, LocalFHECapability
from daocredit.services.gateway import GatewayFHECapability
from daocredit.services.ledger import Ledger
from daocredit.utils.json_encoder import DateTimeEncoder

logger = logging.getLogger(__name__)

SECRET_SETTINGS = {'FHE_API_KEY', 'FHE_LOCAL_KEY', 'DATABASE_URL'}

def build_capability(config: Settings, database: Database) -> FHECapability:
    """Use the relayer gateway when configured, otherwise the local capability"""
    gateway = config.gateway_settings
    if gateway:
        logger.info(f"Using FHE relayer at {gateway.url}")
        return GatewayFHECapability(gateway)

    if not config.FHE_LOCAL_KEY:
        logger.warning("FHE_LOCAL_KEY not set, ciphertexts will not be decryptable after exit")
    return LocalFHECapability(config.FHE_LOCAL_KEY, database=database)

def build_client(config: Settings) -> Tuple[Database, Ledger, ContributionClient]:
    """Wire database, capability, ledger and client from settings"""
    database = Database()
    database.init(DatabaseManager.initialize_from_settings(config), echo=config.DB_ECHO)
    fhe = build_capability(config, database)
    ledger = Ledger(database, fhe, config.LEDGER_ADDRESS)
    client = ContributionClient(
        ledger,
        fhe,
        history_size=config.HISTORY_SIZE,
        leaderboard_size=config.LEADERBOARD_SIZE
    )
    return database, ledger, client

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='daocredit', description='Encrypted DAO contribution ledger')
    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('keygen', help='Generate a key for the local FHE capability')
    commands.add_parser('status', help='Check FHE capability availability')

    submit = commands.add_parser('submit', help='Encrypt and submit a contribution score')
    submit.add_argument('--submitter', required=True, help='Submitter address')
    submit.add_argument('--score', required=True, type=int, help='Plaintext score, encrypted before submission')
    submit.add_argument('--name', default='', help='Short description')
    submit.add_argument('--category', default='development',
                        choices=[c.label for c in ContributionCategory])
    submit.add_argument('--description', default='')
    submit.add_argument('--id', dest='contribution_id', help='Contribution id, generated when omitted')

    verify = commands.add_parser('verify', help='Decrypt and verify a contribution score')
    verify.add_argument('contribution_id')
    verify.add_argument('--caller', required=True, help='Address requesting decryption')

    show = commands.add_parser('show', help='Show one contribution')
    show.add_argument('contribution_id')

    listing = commands.add_parser('list', help='List contributions')
    listing.add_argument('--search', default='')
    listing.add_argument('--category', default='all',
                         choices=['all'] + [c.label for c in ContributionCategory])

    member = commands.add_parser('member', help='Show member aggregate and stats')
    member.add_argument('address')

    leaderboard = commands.add_parser('leaderboard', help='Top members by verified score')
    leaderboard.add_argument('--limit', type=int, default=None)

    events = commands.add_parser('events', help='Show ledger events')
    events.add_argument('--after', type=int, default=0, help='Only events after this sequence number')

    return parser

def execute(args: argparse.Namespace, ledger: Ledger, client: ContributionClient) -> Tuple[bool, Any]:
    """Run one command, returning (ok, result)"""
    if args.command == 'status':
        status = client.check_availability()
        return status.ok, status

    if args.command == 'submit':
        if args.contribution_id:
            client.id_factory = lambda: args.contribution_id
        draft = ContributionDraft(
            name=args.name,
            score=args.score,
            category=ContributionCategory.from_label(args.category),
            description=args.description
        )
        status = client.create_contribution(draft, args.submitter)
        return status.ok, status

    if args.command == 'verify':
        status = client.decrypt_contribution(args.contribution_id, args.caller)
        return status.ok, status

    if args.command == 'show':
        return True, ledger.get_contribution(args.contribution_id)

    if args.command == 'list':
        return True, {
            'contributions': client.list_contributions(args.search, args.category),
            'categories': client.category_counts()
        }

    if args.command == 'member':
        return True, {
            'member': ledger.get_member(args.address),
            'stats': client.user_stats(args.address)
        }

    if args.command == 'leaderboard':
        return True, client.leaderboard(args.limit)

    if args.command == 'events':
        return True, ledger.events(args.after)

    raise ValueError(f"Unsupported command: {args.command}")

def write_result(result: Any, output_dir: Optional[str]) -> None:
    """Print the result as JSON, and save it when an output directory is set"""
    text = json.dumps(result, indent=2, cls=DateTimeEncoder)
    print(text)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        with open(os.path.join(output_dir, "results.json"), 'w') as f:
            f.write(text)

def run(argv: Optional[List[str]] = None, config: Settings = settings) -> int:
    """Parse arguments and run a single command"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format='%(message)s')

    if args.command == 'keygen':
        print(LocalFHECapability.generate_key())
        return 0

    safe_config = config.model_dump(exclude=SECRET_SETTINGS)
    logger.debug(f"Using configuration: {json.dumps(safe_config)}")

    database = None
    try:
        database, ledger, client = build_client(config)
        ok, result = execute(args, ledger, client)
        write_result(result, config.OUTPUT_DIR)
        return 0 if ok else 1
    except DaoCreditError as e:
        logger.error(f"{type(e).__name__}: {e}")
        write_result(TransactionStatus.error(str(e)), None)
        return 1
    except Exception as e:
        logger.error(f"Error running {args.command}: {e}")
        raise
    finally:
        if database is not None:
            database.dispose()

def main() -> None:
    sys.exit(run())

if __name__ == "__main__":
    main()
