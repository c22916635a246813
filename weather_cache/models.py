from sqlalchemy import JSON, BigInteger, Column, MetaData, String, Table

metadata = MetaData()


def cache_table(name: str = "weather_cache") -> Table:
    if name in metadata.tables:
        return metadata.tables[name]
    return Table(
        name,
        metadata,
        Column("city_id", String(64), primary_key=True),
        Column("weather_data", JSON, nullable=False),
        # absolute expiration instant, epoch seconds
        Column("ttl", BigInteger, nullable=False, index=True),
        Column("timestamp", String(40), nullable=False),
    )
