from sqlalchemy import Column, String, Integer, Float, DateTime, JSON, Index, MetaData, Table

metadata = MetaData()


def social_metrics_table(name: str, meta: MetaData = None) -> Table:
    """
    One row per coin per LunarCrush fetch. The table name is the configured
    collection name, so the table is built at runtime rather than declared.
    """
    meta = meta if meta is not None else metadata
    if name in meta.tables:
        return meta.tables[name]

    return Table(
        name,
        meta,
        Column('id', Integer, primary_key=True, autoincrement=True),
        Column('coin_id', Integer),
        Column('symbol', String(50)),
        Column('name', String(255)),
        Column('price', Float),
        Column('volume_24h', Float),
        Column('market_cap', Float),
        Column('galaxy_score', Float),
        Column('alt_rank', Integer),
        Column('sentiment', Float),
        Column('social_dominance', Float),
        Column('interactions_24h', Float),
        Column('fetched_at', DateTime, nullable=False),
        Column('raw_data', JSON),
        Index(f'ix_{name}_symbol_fetched_at', 'symbol', 'fetched_at'),
    )
