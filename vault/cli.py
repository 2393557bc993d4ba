# vault/cli.py
# Command-line front end for the local encrypted vault.
import argparse
import asyncio
import getpass
import logging
import mimetypes
import os
import sys

from core import config
from core.db import DB
from core.errors import VaultError
from core.quota import format_size
from core.vault_session import VaultSession


def _password(args, prompt='Vault password: '):
    if args.password is not None:
        return args.password
    return getpass.getpass(prompt)


async def _unlocked_session(args):
    session = VaultSession(DB(db_path=args.db))
    await session.unlock(_password(args))
    return session


def _close(session):
    if session.is_unlocked:
        session.lock()


async def cmd_status(args):
    session = VaultSession(DB(db_path=args.db))
    print(session.state.name)


async def cmd_setup(args):
    session = VaultSession(DB(db_path=args.db))
    password = _password(args, 'New vault password (8-20 characters): ')
    confirm = args.password if args.password is not None else getpass.getpass('Confirm password: ')
    await session.setup(password, confirm)
    session.lock()
    print('Vault created. There is no way to recover a forgotten password.')


async def cmd_upload(args):
    files = []
    for path in args.files:
        with open(path, 'rb') as f:
            data = f.read()
        mime_type = mimetypes.guess_type(path)[0] or 'application/octet-stream'
        files.append((os.path.basename(path), mime_type, data))
    session = await _unlocked_session(args)
    try:
        results = await session.upload_many(args.role, files)
    finally:
        _close(session)
    failed = 0
    for result in results:
        if result.ok:
            print(f'{result.record.id}\t{result.name}\t{format_size(result.record.plain_size)}')
        else:
            failed += 1
            print(f'{result.name}: {result.error}', file=sys.stderr)
    return 1 if failed else 0


async def cmd_list(args):
    session = VaultSession(DB(db_path=args.db))
    records = await session.list_files(role=args.role)
    for record in records:
        info = record.summary()
        print(f'{info["id"]}\t{info["name"]}\t{format_size(info["plain_size"])}\t{info["mime_type"]}\t{info["uploaded_at"]}')
    if not records:
        print('Vault is empty')


async def cmd_download(args):
    session = await _unlocked_session(args)
    try:
        data = await session.download(args.id, role=args.role)
        record = await session.store.get(args.id)
    finally:
        _close(session)
    out = args.output or record.name
    with open(out, 'wb') as f:
        f.write(data)
    print(f'Decrypted {record.name} to {out}')


async def cmd_delete(args):
    session = await _unlocked_session(args)
    try:
        await session.delete(args.id, role=args.role)
    finally:
        _close(session)
    print(f'Deleted {args.id}')


async def cmd_usage(args):
    session = VaultSession(DB(db_path=args.db))
    usage = await session.usage(args.role)
    print(usage.describe())


def build_parser():
    parser = argparse.ArgumentParser(prog='nexus-vault', description='Password-protected local file vault')
    parser.add_argument('--db', default=config.DB_PATH, help='path to the vault database')
    parser.add_argument('-v', '--verbose', action='store_true')
    sub = parser.add_subparsers(dest='command', required=True)

    def add(name, func, password=False, role=False):
        p = sub.add_parser(name)
        p.set_defaults(func=func)
        if password:
            p.add_argument('--password', help='vault password (prompted when omitted)')
        if role:
            p.add_argument('--role', default='admin')
        return p

    add('status', cmd_status)
    add('setup', cmd_setup, password=True)
    add('upload', cmd_upload, password=True, role=True).add_argument('files', nargs='+')
    add('list', cmd_list, role=True)
    p = add('download', cmd_download, password=True, role=True)
    p.add_argument('id')
    p.add_argument('-o', '--output')
    add('delete', cmd_delete, password=True, role=True).add_argument('id')
    add('usage', cmd_usage, role=True)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
                        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
    try:
        return asyncio.run(args.func(args)) or 0
    except (VaultError, OSError) as e:
        print(f'error: {e}', file=sys.stderr)
        return 1
