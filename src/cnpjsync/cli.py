"""Command line entry point for CNPJ lookups and seller synchronisation."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import CompanyLookupError, Unauthorized, classify_failure
from .excel_store import ExcelRecordStore, validate_column
from .providers import BrasilApiProvider, CnpjwsProvider
from .rate_limiter import RateLimiter
from .registry_id import format_registry_id
from .report_export import check_export_path, export_report
from .resolver import LookupResolver
from .settings import Settings, load_settings
from .sync import SellerUpdater, SyncReport, sync_all, sync_remaining
from .utils.logging_setup import setup_logger

logger = setup_logger().getChild("cli")

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_UNAUTHORIZED = 3
EXIT_FAILURES = 4


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"inteiro inválido: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"deve ser positivo: {value}")
    return number


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        help="YAML com configurações (sobrescrito por variáveis de ambiente)",
    )
    common.add_argument("--verbose", action="store_true", help="Log detalhado (DEBUG)")

    store = argparse.ArgumentParser(add_help=False)
    store.add_argument("--excel", required=True, help="Planilha com os vendedores")
    store.add_argument("--sheet", default=None, help="Nome da aba (padrão: aba ativa)")
    store.add_argument(
        "--mapping-yaml",
        help="YAML com o mapeamento entre campos do vendedor e colunas",
    )
    store.add_argument(
        "--dry-run",
        action="store_true",
        help="Não salva a planilha ao final",
    )

    bulk = argparse.ArgumentParser(add_help=False)
    bulk.add_argument(
        "--batch-size", type=_positive_int, default=None, help="Tamanho do lote"
    )
    bulk.add_argument("--export", default=None, help="Grava o relatório (.json, .csv ou .xlsx)")

    parser = argparse.ArgumentParser(
        prog="cnpjsync",
        description="Atualiza dados de vendedores a partir do CNPJ (CNPJ.ws com fallback BrasilAPI)",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser(
        "sync-all",
        parents=[common, store, bulk],
        help="Atualiza todos os vendedores",
    )
    commands.add_parser(
        "sync-remaining",
        parents=[common, store, bulk],
        help="Atualiza apenas vendedores com endereço pendente",
    )
    update = commands.add_parser(
        "update-seller",
        parents=[common, store],
        help="Atualiza um único vendedor pelo ID",
    )
    update.add_argument("seller_id", help="ID do vendedor")
    lookup = commands.add_parser("lookup", parents=[common], help="Consulta um CNPJ")
    lookup.add_argument("cnpj", help="CNPJ com ou sem pontuação")
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    setup_logger(level)


def _load_mapping(path: str | None) -> dict[str, str]:
    if not path:
        return {}

    mapping_path = Path(path)
    if not mapping_path.exists():
        raise FileNotFoundError(f"Arquivo de mapeamento não encontrado: {mapping_path}")

    data = yaml.safe_load(mapping_path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("O YAML de mapeamento deve conter um dicionário")

    mapping: dict[str, str] = {}
    for key, value in data.items():
        # An empty value unmaps an optional column.
        column = validate_column(None if value is None else str(value))
        mapping[str(key)] = column or ""
    return mapping


def _build_resolver(settings: Settings) -> LookupResolver:
    primary = CnpjwsProvider(
        settings.cnpjws_api_token or None,
        base_url=settings.cnpjws_api_url,
        rate_limiter=RateLimiter(
            settings.cnpjws_rate_limit,
            settings.cnpjws_rate_window,
            name="cnpjws",
        ),
        timeout=settings.timeout,
    )
    fallback = BrasilApiProvider(settings.brasil_api_url, timeout=settings.timeout)
    return LookupResolver(primary, fallback)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _run_bulk(args: argparse.Namespace, settings: Settings, store: ExcelRecordStore) -> int:
    updater = SellerUpdater(store, _build_resolver(settings))
    options = settings.sync_options()

    start_time = time.perf_counter()
    report: SyncReport
    try:
        if args.command == "sync-all":
            report = sync_all(
                store,
                updater,
                batch_size=(
                    args.batch_size
                    if args.batch_size is not None
                    else settings.full_batch_size
                ),
                **options,
            )
        else:
            report = sync_remaining(
                store,
                updater,
                batch_size=(
                    args.batch_size
                    if args.batch_size is not None
                    else settings.remaining_batch_size
                ),
                **options,
            )
    finally:
        # Rows written before an abort are kept.
        if not args.dry_run:
            store.save()

    duration = time.perf_counter() - start_time
    logger.info(
        "Processamento concluído: total=%s sucesso=%s falhas=%s duração=%.2fs",
        report.total,
        report.success,
        report.failed,
        duration,
    )
    _print_json(report.to_dict())
    if args.export:
        try:
            export_report(report, args.export)
        except (OSError, ValueError) as exc:
            logger.error("Não foi possível gravar o relatório em %s: %s", args.export, exc)
            return EXIT_CONFIG
    return EXIT_FAILURES if report.failed else EXIT_OK


def _run_update_seller(
    args: argparse.Namespace, settings: Settings, store: ExcelRecordStore
) -> int:
    updater = SellerUpdater(store, _build_resolver(settings))
    try:
        seller = updater.update_seller(args.seller_id)
    except CompanyLookupError as exc:
        logger.error("Falha ao atualizar vendedor %s: %s", args.seller_id, exc)
        _print_json({"id": args.seller_id, "error": str(exc), "kind": classify_failure(exc).value})
        return EXIT_FAILURES
    if not args.dry_run:
        store.save()
    _print_json(seller.to_dict())
    return EXIT_OK


def _run_lookup(args: argparse.Namespace, settings: Settings) -> int:
    resolver = _build_resolver(settings)
    try:
        record = resolver.get_company_data(args.cnpj)
    except CompanyLookupError as exc:
        logger.error("Consulta falhou para %s: %s", args.cnpj, exc)
        _print_json({"cnpj": args.cnpj, "error": str(exc), "kind": classify_failure(exc).value})
        return EXIT_FAILURES
    _print_json(
        {
            "cnpj": format_registry_id(args.cnpj),
            "legal_name": record.legal_name,
            "address": asdict(record.address),
            "source": record.source,
        }
    )
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    dotenv_path = Path(".env")
    if dotenv_path.exists():
        load_dotenv(dotenv_path=dotenv_path)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        logger.error("Configuração inválida: %s", exc)
        return EXIT_CONFIG

    try:
        if args.command == "lookup":
            return _run_lookup(args, settings)

        try:
            if getattr(args, "export", None):
                check_export_path(args.export)
            mapping = _load_mapping(args.mapping_yaml)
            store = ExcelRecordStore(args.excel, sheet=args.sheet, mapping=mapping)
        except (OSError, ValueError) as exc:
            logger.error("Parâmetros inválidos: %s", exc)
            return EXIT_CONFIG

        if args.command == "update-seller":
            return _run_update_seller(args, settings, store)
        return _run_bulk(args, settings, store)
    except Unauthorized as exc:
        logger.error("Abortado por erro de credenciais: %s", exc)
        return EXIT_UNAUTHORIZED


if __name__ == "__main__":
    sys.exit(main())
