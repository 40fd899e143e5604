# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Renders the DDL for the PostgreSQL ledger tables."""

import importlib.resources
import re

from jinja2 import Environment, FileSystemLoader

_SCHEMA_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class SchemaRenderer:
    """Renders the SQL templates shipped in the package's sql directory."""

    def __init__(self) -> None:
        sql_path = importlib.resources.files("medproof").joinpath("sql")
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(sql_path)),
            autoescape=False,  # SQL is not HTML
        )

    def render(self, template_name: str, schema: str) -> str:
        """Render a template for the given schema.

        The schema name is interpolated as a quoted identifier, so it is
        restricted to plain identifier characters.
        """
        if not _SCHEMA_NAME.match(schema):
            msg = f"Invalid schema name: {schema!r}"
            raise ValueError(msg)
        template = self.jinja_env.get_template(template_name)
        return template.render(schema=schema)

    def create_tables_sql(self, schema: str) -> str:
        return self.render("create_tables.sql", schema)
