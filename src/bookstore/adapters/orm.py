"""
Schéma SQLAlchemy de l'état client persisté.

Le client ne persiste qu'une chose : le panier en cours. On garde une
table clé/valeur générique (une ligne par entrée nommée) plutôt qu'un
mapping des lignes du panier : la valeur est relue et réécrite en entier
à chaque mutation, exactement comme un stockage local de navigateur.
"""

from sqlalchemy import Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

metadata = MetaData()

client_state = Table(
    "client_state",
    metadata,
    Column("name", String(255), primary_key=True),
    Column("value", Text, nullable=False),
)


def create_tables(engine: Engine) -> None:
    """Crée la table d'état si elle n'existe pas encore."""
    metadata.create_all(engine)
