import os
from typing import Any, Dict, List

from botocore.exceptions import ClientError

from .client import get_dynamo_resource

DEFAULT_ITEMS_TABLE = "library_items"


def items_table_name() -> str:
    # read per call so a .env loaded after import still applies
    return os.environ.get("DDB_TABLE_ITEMS") or DEFAULT_ITEMS_TABLE


def table_definitions() -> Dict[str, Dict[str, Any]]:
    # only the key is declared; every lookup is a filtered scan
    return {
        items_table_name(): {
            "KeySchema": [{"AttributeName": "key", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "key", "AttributeType": "S"}],
            "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
        },
    }


def ensure_tables(ddb=None) -> List[str]:
    ddb = ddb or get_dynamo_resource()
    existing = {t.name for t in ddb.tables.all()}
    created = []
    for name, definition in table_definitions().items():
        if name in existing:
            continue
        try:
            ddb.create_table(TableName=name, **definition).wait_until_exists()
            created.append(name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                raise
    return created
