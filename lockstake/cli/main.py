# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import logging
import os
import requests
from .keystore import KeyStore
from ..protocol.config.params import CURRENT_NETWORK, DECIMALS, DENOM
from ..protocol.types.common import ProtocolError

DEFAULT_NODE = "http://localhost:8000"

logger = logging.getLogger(__name__)

def get_node_url(args):
    return args.node or os.environ.get("LOCKSTAKE_NODE", DEFAULT_NODE)

def _load_json(path):
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot read {path}: {e}")
        sys.exit(1)

def _resolve_key(name):
    try:
        key = KeyStore().get_key(name)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if not key:
        print(f"Key '{name}' not found.")
        sys.exit(1)
    return key

# --- Keys Commands ---
def cmd_keys_add(args):
    ks = KeyStore()
    try:
        key = ks.create_key(args.name)
        print(f"Key '{args.name}' created.")
        print(f"Pubkey:  {key['public_key']}")
        print("Important: Private key saved unencrypted. Do not share!")
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

def cmd_keys_import(args):
    ks = KeyStore()
    try:
        key = ks.import_key(args.name, args.private_key)
        print(f"Key '{args.name}' imported.")
        print(f"Pubkey:  {key['public_key']}")
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

def cmd_keys_list(args):
    keys = KeyStore().list_keys()
    if not keys:
        print("No keys found.")
        return

    print(f"{'Name':<15} {'Public Key':<68}")
    print("-" * 83)
    for k in keys:
        print(f"{k['name']:<15} {k['public_key']:<68}")

def cmd_keys_show(args):
    key = _resolve_key(args.name)
    print(json.dumps({k: v for k, v in key.items() if k != 'private_key'}, indent=2))

# --- Settlement Commands ---
def cmd_settle(args):
    from ..settlement import SettlementEngine

    data = _load_json(args.input)
    if args.key:
        if not isinstance(data, dict) or not isinstance(data.get("pool_info"), dict):
            print("Error: input has no pool_info object")
            sys.exit(1)
        data["pool_info"]["verifier_private_key"] = _resolve_key(args.key)["private_key"]

    try:
        output = SettlementEngine().settle(data)
    except ProtocolError as e:
        print(f"Error [{e.code}]: {e}")
        sys.exit(1)

    text = json.dumps(output.model_dump(), indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(text)
        print(f"Settlement written to {args.output}")
        print(f"Pool:        {output.pool_info.pool_name} (Day {output.pool_info.day}, Period {output.pool_info.period})")
        print(f"Merkle root: {output.pool_info.merkle_root}")
        print(f"Slashed:     {int(output.pool_info.total_slashed_amount) / 10**DECIMALS} {DENOM}")
    else:
        print(text)

def cmd_audit(args):
    from pydantic import ValidationError as PydanticValidationError
    from ..settlement import SettlementEngine

    data = _load_json(args.input)
    try:
        ok = SettlementEngine.audit(data, public_key=args.public_key)
    except PydanticValidationError as e:
        print(f"Error: malformed settlement output: {e}")
        sys.exit(1)

    if not ok:
        print("Audit FAILED (see log for the first failing claim)")
        sys.exit(1)
    print(f"Audit passed: {len(data['user_results'])} claim bundles verified")

# --- Node Commands ---
def cmd_node(args):
    from ..ledger.core.collaborators import AuthorityConfig, InMemoryTokenGateway
    from ..ledger.core.contract import LockContract
    from ..ledger.rpc.api import start_rpc_server

    if args.key:
        try:
            authority_key = KeyStore().signer(args.key).public_key
        except KeyError:
            print(f"Key '{args.key}' not found.")
            sys.exit(1)
    elif args.authority_key:
        authority_key = args.authority_key
    else:
        print("Error: --key or --authority-key required")
        sys.exit(1)

    authority = AuthorityConfig(owner=args.owner, authority_public_key=authority_key)
    contract = LockContract(authority, InMemoryTokenGateway(), args.contract_address)
    logger.info(f"Devnet contract {contract.address} on network {CURRENT_NETWORK.network_id}, "
                f"owner {authority.owner}")
    start_rpc_server(contract, host=args.host, port=args.port)

# --- Query Commands ---
def _get(args, path):
    url = get_node_url(args)
    try:
        resp = requests.get(f"{url}{path}")
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

def cmd_query_status(args):
    print(json.dumps(_get(args, "/status"), indent=2))

def cmd_query_pool(args):
    data = _get(args, f"/pools/{args.day}/{args.period}")
    print(f"Pool:         {data['pool_name']} (Day {data['day']}, Period {data['period']})")
    print(f"Total staked: {int(data['total_staked']) / 10**DECIMALS} {DENOM}")
    print(f"Participants: {data['participant_count']}")
    print(f"Finalized:    {data['finalized']}")
    print(f"Merkle root:  {data['merkle_root']}")

def cmd_query_lock(args):
    print(json.dumps(_get(args, f"/locks/{args.address}/{args.day}/{args.period}"), indent=2))

def cmd_publish_root(args):
    output = _load_json(args.input)
    pool = output["pool_info"]
    url = get_node_url(args)
    payload = {"caller": args.owner, "day": pool["day"], "period": pool["period"], "root": pool["merkle_root"]}
    try:
        resp = requests.post(f"{url}/publish_root", json=payload)
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    print(f"Root {pool['merkle_root']} published for Day {pool['day']}, Period {pool['period']}")

def main(argv=None):
    parser = argparse.ArgumentParser(prog="lockstake", description="Lockstake settlement and contract CLI")
    parser.add_argument("--node", help=f"Node URL (default: {DEFAULT_NODE})")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Sub-commands")

    # keys
    p_keys = subparsers.add_parser("keys", help="Manage verifier keys")
    sp_keys = p_keys.add_subparsers(dest="subcommand")

    pk_add = sp_keys.add_parser("add", help="Create new key")
    pk_add.add_argument("name", help="Key name")

    pk_imp = sp_keys.add_parser("import", help="Import private key")
    pk_imp.add_argument("name", help="Key name")
    pk_imp.add_argument("--private-key", required=True, help="Hex private key")

    sp_keys.add_parser("list", help="List keys")

    pk_show = sp_keys.add_parser("show", help="Show key details")
    pk_show.add_argument("name", help="Key name")

    # settle / audit
    p_settle = subparsers.add_parser("settle", help="Settle one pool from a batch input file")
    p_settle.add_argument("--input", required=True, help="Batch input JSON")
    p_settle.add_argument("--output", help="Output JSON (default: stdout)")
    p_settle.add_argument("--key", help="Keystore key to sign with (overrides verifier_private_key)")

    p_audit = subparsers.add_parser("audit", help="Re-verify a settlement output file")
    p_audit.add_argument("--input", required=True, help="Settlement output JSON")
    p_audit.add_argument("--public-key", help="Expected authority public key (hex)")

    # node
    p_node = subparsers.add_parser("node", help="Run a devnet contract node")
    p_node.add_argument("--host", default="0.0.0.0", help="RPC Host")
    p_node.add_argument("--port", type=int, default=8000, help="RPC Port")
    p_node.add_argument("--owner", default="0x1", help="Contract owner address")
    p_node.add_argument("--contract-address", default="0x1000", help="Contract address")
    p_node.add_argument("--key", help="Keystore key whose public key is the authority key")
    p_node.add_argument("--authority-key", help="Authority public key (hex)")

    # query
    p_query = subparsers.add_parser("query", help="Query contract state")
    sp_query = p_query.add_subparsers(dest="subcommand")

    sp_query.add_parser("status", help="Node status")

    pq_pool = sp_query.add_parser("pool", help="Get pool by day and period")
    pq_pool.add_argument("day", type=int, help="Unix day")
    pq_pool.add_argument("period", type=int, help="Period within the day")

    pq_lock = sp_query.add_parser("lock", help="Get a participant's lock")
    pq_lock.add_argument("address", help="Participant address")
    pq_lock.add_argument("day", type=int, help="Unix day")
    pq_lock.add_argument("period", type=int, help="Period within the day")

    # publish-root
    p_pub = subparsers.add_parser("publish-root", help="Publish the root of a settlement output")
    p_pub.add_argument("--input", required=True, help="Settlement output JSON")
    p_pub.add_argument("--owner", required=True, help="Contract owner address")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "keys":
        if args.subcommand == "add": cmd_keys_add(args)
        elif args.subcommand == "import": cmd_keys_import(args)
        elif args.subcommand == "list": cmd_keys_list(args)
        elif args.subcommand == "show": cmd_keys_show(args)
        else: p_keys.print_help()

    elif args.command == "settle":
        cmd_settle(args)
    elif args.command == "audit":
        cmd_audit(args)
    elif args.command == "node":
        cmd_node(args)

    elif args.command == "query":
        if args.subcommand == "status": cmd_query_status(args)
        elif args.subcommand == "pool": cmd_query_pool(args)
        elif args.subcommand == "lock": cmd_query_lock(args)
        else: p_query.print_help()

    elif args.command == "publish-root":
        cmd_publish_root(args)

    else:
        parser.print_help()

if __name__ == "__main__":
    main()
