"""
Adapter de objetos PostgreSQL (database, role, grant) vía psql.

El SQL se envía por stdin a psql ejecutado como el usuario administrador
del sistema (postgres por defecto), así nunca aparece en la línea de comandos.

Atributos según `type`:
    database: owner
    role: login (por defecto true); password (directiva, solo escritura)
    grant: database, role, privileges (CONNECT, CREATE, TEMPORARY o ALL)
"""

import logging
from typing import Any, Dict, List, Optional

from forja.core.project.models import Action, ActionStatus, ActionVerb, Resource, ResourceKind
from forja.providers.commands import CommandAdapter, CommandResult, CommandRunner

logger = logging.getLogger(__name__)

OBJECT_TYPES = ("database", "role", "grant")
DATABASE_PRIVILEGES = ("CONNECT", "CREATE", "TEMPORARY")
_PRIVILEGE_ALIASES = {"TEMP": "TEMPORARY"}
_PSQL = ["psql", "-X", "-q", "-t", "-A", "-v", "ON_ERROR_STOP=1", "-d", "postgres"]

_ATTRIBUTES_BY_TYPE = {
    "database": {"owner"},
    "role": {"login", "password"},
    "grant": {"database", "role", "privileges"},
}


def quote_ident(name: str) -> str:
    """Identificador SQL entre comillas dobles (escapa comillas internas)."""
    return '"' + str(name).replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Literal SQL entre comillas simples (escapa comillas internas)."""
    return "'" + str(value).replace("'", "''") + "'"


def normalize_privileges(value: Any) -> List[str]:
    """
    Normaliza una lista de privilegios de base de datos.

    ALL se expande a CONNECT, CREATE, TEMPORARY; TEMP es alias de TEMPORARY.

    Raises:
        ValueError: privilegio desconocido
    """
    if isinstance(value, str):
        items = [p for p in value.replace(",", " ").split() if p]
    else:
        items = [str(p) for p in value or []]
    result = set()
    for item in items:
        upper = item.strip().upper()
        if upper in ("ALL", "ALL PRIVILEGES"):
            result.update(DATABASE_PRIVILEGES)
            continue
        upper = _PRIVILEGE_ALIASES.get(upper, upper)
        if upper not in DATABASE_PRIVILEGES:
            raise ValueError(f"privilegio desconocido: {item}")
        result.add(upper)
    return sorted(result)


class DatabaseAdapter(CommandAdapter):
    kind = ResourceKind.DB_OBJECT
    states = ("present", "absent")
    known_attributes = frozenset({"type", "owner", "login", "database", "role", "privileges"})
    directives = frozenset({"password"})

    def __init__(self, runner: Optional[CommandRunner] = None, admin_user: str = "postgres"):
        super().__init__(runner)
        self.admin_user = admin_user

    def psql(self, sql: str) -> CommandResult:
        return self.runner.run(
            _PSQL,
            input=sql,
            user=self.admin_user,
        )

    def validate(self, resource: Resource) -> List[str]:
        errors = super().validate(resource)
        attrs = resource.attributes
        object_type = attrs.get("type")
        if object_type not in OBJECT_TYPES:
            errors.append(f"{resource.id}: type debe ser uno de {', '.join(OBJECT_TYPES)}")
            return errors
        allowed = _ATTRIBUTES_BY_TYPE[object_type] | {"type", "state"}
        for name in attrs:
            if name not in allowed and name in self.known_attributes | self.directives:
                errors.append(f"{resource.id}: '{name}' no aplica a type {object_type}")
        if object_type == "grant":
            for required in ("database", "role"):
                if not attrs.get(required):
                    errors.append(f"{resource.id}: un grant requiere '{required}'")
            if not resource.wants_absent:
                try:
                    if not normalize_privileges(attrs.get("privileges")):
                        errors.append(f"{resource.id}: un grant requiere 'privileges'")
                except ValueError as e:
                    errors.append(f"{resource.id}: {e}")
        if "login" in attrs and not isinstance(attrs["login"], bool):
            errors.append(f"{resource.id}: login debe ser booleano")
        return errors

    def desired(self, resource: Resource) -> Dict[str, Any]:
        desired = super().desired(resource)
        desired.pop("type", None)
        desired.setdefault("state", "present")
        object_type = resource.attributes.get("type")
        if object_type == "role":
            desired.setdefault("login", True)
        elif object_type == "grant":
            # database y role forman la identidad del grant, no se comparan
            desired.pop("database", None)
            desired.pop("role", None)
            desired["privileges"] = normalize_privileges(desired.get("privileges"))
        return desired

    def differs(self, field: str, desired: Any, actual: Any) -> bool:
        if field == "privileges":
            return not set(desired or []) <= set(actual or [])
        return desired != actual

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        attrs = resource.attributes
        object_type = attrs.get("type")
        if object_type == "database":
            rows = self._query(resource, (
                "SELECT pg_catalog.pg_get_userbyid(datdba) FROM pg_catalog.pg_database "
                f"WHERE datname = {quote_literal(resource.name)};"
            ))
            if not rows:
                return None
            return {"state": "present", "owner": rows[0]}

        if object_type == "role":
            rows = self._query(resource, (
                "SELECT rolcanlogin FROM pg_catalog.pg_roles "
                f"WHERE rolname = {quote_literal(resource.name)};"
            ))
            if not rows:
                return None
            return {"state": "present", "login": rows[0] == "t"}

        rows = self._query(resource, (
            "SELECT a.privilege_type FROM pg_catalog.pg_database d, "
            "LATERAL aclexplode(d.datacl) a "
            f"WHERE d.datname = {quote_literal(attrs['database'])} "
            "AND a.grantee = (SELECT oid FROM pg_catalog.pg_roles "
            f"WHERE rolname = {quote_literal(attrs['role'])});"
        ))
        if not rows:
            return None
        return {"state": "present", "privileges": sorted(set(rows))}

    def apply(self, action: Action) -> ActionStatus:
        resource = action.resource
        object_type = resource.attributes.get("type")
        if object_type == "database":
            sql = self._database_sql(action)
        elif object_type == "role":
            sql = self._role_sql(action)
        else:
            sql = self._grant_sql(action)
        if sql:
            self._execute(resource.id, sql)
        return ActionStatus.APPLIED

    def _database_sql(self, action: Action) -> Optional[str]:
        resource = action.resource
        name = quote_ident(resource.name)
        owner = resource.attributes.get("owner")
        if action.verb == ActionVerb.REMOVE:
            return f"DROP DATABASE {name};"
        if action.verb == ActionVerb.CREATE:
            sql = f"CREATE DATABASE {name}"
            if owner:
                sql += f" OWNER {quote_ident(owner)}"
            return sql + ";"
        if "owner" in action.changes():
            return f"ALTER DATABASE {name} OWNER TO {quote_ident(owner)};"
        return None

    def _role_sql(self, action: Action) -> Optional[str]:
        resource = action.resource
        attrs = resource.attributes
        name = quote_ident(resource.name)
        if action.verb == ActionVerb.REMOVE:
            return f"DROP ROLE {name};"
        login = "LOGIN" if attrs.get("login", True) else "NOLOGIN"
        if action.verb == ActionVerb.CREATE:
            sql = f"CREATE ROLE {name} {login}"
            password = attrs.get("password")
            if password:
                self.runner.add_secrets([str(password)])
                sql += f" PASSWORD {quote_literal(password)}"
            return sql + ";"
        if "login" in action.changes():
            return f"ALTER ROLE {name} {login};"
        return None

    def _grant_sql(self, action: Action) -> str:
        attrs = action.resource.attributes
        database = quote_ident(attrs["database"])
        role = quote_ident(attrs["role"])
        if action.verb == ActionVerb.REMOVE:
            return f"REVOKE ALL ON DATABASE {database} FROM {role};"
        privileges = ", ".join(normalize_privileges(attrs.get("privileges")))
        return f"GRANT {privileges} ON DATABASE {database} TO {role};"

    def _query(self, resource: Resource, sql: str) -> List[str]:
        result = self.psql(sql)
        if not result.ok:
            raise self._probe_error(resource.id, result)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def _execute(self, resource_id: str, sql: str) -> None:
        logger.debug("%s: %s", resource_id, self.runner.mask(sql))
        self._check(
            resource_id,
            _PSQL,
            input=sql,
            user=self.admin_user,
        )
