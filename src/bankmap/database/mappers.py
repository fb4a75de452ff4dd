"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the JSON shapes used for
mappings, splits and raw row snapshots.
"""

from decimal import Decimal
from typing import Any

from bankmap.domain import entities as domain
from bankmap.database.models import (
    Account as ORMAccount,
    Category as ORMCategory,
    ImportBatch as ORMImportBatch,
    MappingTemplate as ORMMappingTemplate,
    StagedTransaction as ORMStagedTransaction,
    Transaction as ORMTransaction,
)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        bank_name=orm_account.bank_name,
        created_at=orm_account.created_at,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        created_at=orm_category.created_at,
    )


def mapping_to_json(mapping: domain.ColumnMapping) -> dict[str, Any]:
    return {
        "date_column": mapping.date_column,
        "description_column": mapping.description_column,
        "amount_column": mapping.amount_column,
        "debit_column": mapping.debit_column,
        "credit_column": mapping.credit_column,
        "transaction_type_column": mapping.transaction_type_column,
        "amount_sign_convention": mapping.amount_sign_convention.value,
        "date_format": mapping.date_format,
        "has_headers": mapping.has_headers,
    }


def mapping_from_json(data: dict[str, Any]) -> domain.ColumnMapping:
    return domain.ColumnMapping(
        date_column=data.get("date_column"),
        description_column=data.get("description_column"),
        amount_column=data.get("amount_column"),
        debit_column=data.get("debit_column"),
        credit_column=data.get("credit_column"),
        transaction_type_column=data.get("transaction_type_column"),
        amount_sign_convention=domain.AmountSignConvention(
            data.get("amount_sign_convention", domain.AmountSignConvention.POSITIVE_IS_EXPENSE.value)
        ),
        date_format=data.get("date_format"),
        has_headers=data.get("has_headers", True),
    )


def splits_to_json(splits: list[domain.CategorySplit]) -> list[dict[str, Any]]:
    return [{"category_id": s.category_id, "amount": str(s.amount)} for s in splits]


def splits_from_json(data: list[dict[str, Any]]) -> list[domain.CategorySplit]:
    return [domain.CategorySplit(category_id=s["category_id"], amount=Decimal(s["amount"])) for s in data]


def template_to_domain(orm_template: ORMMappingTemplate) -> domain.MappingTemplate:
    """Convert SQLAlchemy MappingTemplate model to domain MappingTemplate entity."""
    return domain.MappingTemplate(
        id=orm_template.id,
        fingerprint=orm_template.fingerprint,
        name=orm_template.name,
        column_count=orm_template.column_count,
        mapping=mapping_from_json(orm_template.mapping),
        usage_count=orm_template.usage_count,
        last_used=orm_template.last_used,
        created_at=orm_template.created_at,
    )


def staged_to_domain(orm_staged: ORMStagedTransaction) -> domain.ParsedTransaction:
    """Convert a staged row to a mutable domain ParsedTransaction."""
    return domain.ParsedTransaction(
        id=orm_staged.id,
        row_number=orm_staged.row_number,
        date=orm_staged.date,
        description=orm_staged.description,
        amount=Decimal(orm_staged.amount).quantize(Decimal("0.01")) if orm_staged.amount is not None else None,
        transaction_type=domain.TransactionType(orm_staged.transaction_type),
        merchant=orm_staged.merchant,
        original_row=list(orm_staged.original_row),
        content_hash=orm_staged.content_hash,
        is_duplicate=orm_staged.is_duplicate,
        duplicate_type=domain.DuplicateType(orm_staged.duplicate_type),
        status=domain.TransactionStatus(orm_staged.status),
        splits=splits_from_json(orm_staged.splits),
        suggested_category_id=orm_staged.suggested_category_id,
        suggestion_confidence=orm_staged.suggestion_confidence,
        errors=list(orm_staged.errors),
        user_reviewed=orm_staged.user_reviewed,
    )


def apply_staged(orm_staged: ORMStagedTransaction, txn: domain.ParsedTransaction) -> None:
    """Copy a domain ParsedTransaction onto a staged row."""
    orm_staged.row_number = txn.row_number
    orm_staged.date = txn.date
    orm_staged.description = txn.description
    orm_staged.amount = txn.amount
    orm_staged.transaction_type = txn.transaction_type.value
    orm_staged.merchant = txn.merchant
    orm_staged.original_row = list(txn.original_row)
    orm_staged.content_hash = txn.content_hash
    orm_staged.is_duplicate = txn.is_duplicate
    orm_staged.duplicate_type = txn.duplicate_type.value
    orm_staged.status = txn.status.value
    orm_staged.splits = splits_to_json(txn.splits)
    orm_staged.suggested_category_id = txn.suggested_category_id
    orm_staged.suggestion_confidence = txn.suggestion_confidence
    orm_staged.errors = list(txn.errors)
    orm_staged.user_reviewed = txn.user_reviewed


def batch_to_domain(orm_batch: ORMImportBatch) -> domain.QueuedImportBatch:
    """Convert SQLAlchemy ImportBatch model (with staged rows) to a domain batch."""
    return domain.QueuedImportBatch(
        batch_id=orm_batch.id,
        file_name=orm_batch.file_name,
        source_type=domain.SourceType(orm_batch.source_type),
        account_id=orm_batch.account_id,
        raw_rows=[list(row) for row in orm_batch.raw_rows],
        mapping=mapping_from_json(orm_batch.mapping),
        fingerprint=orm_batch.fingerprint,
        mapping_name=orm_batch.mapping_name,
        template_id=orm_batch.template_id,
        transactions=[staged_to_domain(s) for s in orm_batch.staged_transactions],
        duplicate_check_pending=orm_batch.duplicate_check_pending,
        categorization_pending=orm_batch.categorization_pending,
        created_at=orm_batch.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        account_id=orm_transaction.account_id,
        date=orm_transaction.date,
        amount=Decimal(orm_transaction.amount).quantize(Decimal("0.01")),
        description=orm_transaction.description,
        merchant=orm_transaction.merchant,
        category_id=orm_transaction.category_id,
        content_hash=orm_transaction.content_hash,
        batch_id=orm_transaction.batch_id,
        imported_at=orm_transaction.imported_at,
        splits=tuple(
            domain.CategorySplit(
                category_id=s.category_id, amount=Decimal(s.amount).quantize(Decimal("0.01"))
            )
            for s in orm_transaction.splits
        ),
    )
