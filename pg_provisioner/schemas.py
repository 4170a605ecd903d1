from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectionTarget(_CamelModel):
    # host/user/password/database_name are required, but checked by
    # service.validate_connection_target so callers get one combined message
    platform: Optional[str] = None
    host: Optional[str] = None
    port: int = 5432
    ssl_mode: str = "Prefer"
    user: Optional[str] = None
    password: Optional[str] = None
    database_name: Optional[str] = None


class ProvisionRequest(ConnectionTarget):
    new_user_password: Optional[str] = None
    schemas: Optional[List[str]] = None
    revoke_public_access: bool = True
    modify_existing: bool = False
    additional_sql_commands: Optional[List[str]] = None
    url_decode_additional_sql_commands: bool = False


class QueryRequest(ConnectionTarget):
    query_string: Optional[str] = None
    url_decode_query_string: bool = False


class QueryAccepted(_CamelModel):
    accepted: bool = True
    database_name: str
