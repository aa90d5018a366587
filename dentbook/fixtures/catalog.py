"""Branch and service catalog seeded into fresh databases."""

LOCATIONS: list[dict] = [
    {
        "id": "tepic",
        "name": "Matriz Tepic",
        "address": "Country Club 10, Caoba y Av. Insurgentes, Versalles, C.P. 63139, Tepic, Nayarit",
        "phone": "+52 311 133 8000",
    },
    {
        "id": "marina",
        "name": "Marina Nuevo Nayarit",
        "address": "Nuevo Vallarta Plaza Business Center, Bahía de Banderas, Nayarit",
        "phone": "+52 322 183 7666",
    },
    {
        "id": "centro-empresarial",
        "name": "Centro Empresarial Nuevo Nayarit",
        "address": "Núcleo Médico Joya, Bahía de Banderas, Nayarit",
        "phone": "+52 322 183 7666",
    },
    {
        "id": "puerto-magico",
        "name": "Puerto Mágico Puerto Vallarta",
        "address": "Plaza Puerto Mágico, Puerto Vallarta, Jalisco",
        "phone": "+52 322 183 7666",
    },
]

SERVICES: list[dict] = [
    {"id": "general", "name": "Odontología General"},
    {"id": "ortodoncia", "name": "Ortodoncia"},
    {"id": "implantes", "name": "Implantes Dentales"},
    {"id": "estetica", "name": "Estética Dental"},
    {"id": "blanqueamiento", "name": "Blanqueamiento"},
    {"id": "endodoncia", "name": "Endodoncia"},
    {"id": "periodoncia", "name": "Periodoncia"},
    {"id": "infantil", "name": "Odontopediatría"},
]


async def seed_catalog(session) -> None:
    """Insert or refresh the branch and service catalog.

    Args:
        session: AsyncSession database session
    """
    from sqlalchemy import select

    from dentbook.models.catalog import Location, Service

    for model, rows in ((Location, LOCATIONS), (Service, SERVICES)):
        result = await session.execute(select(model))
        existing = {row.id: row for row in result.scalars().all()}

        for position, data in enumerate(rows):
            values = dict(data)
            if model is Service:
                values.setdefault("display_order", position)

            row = existing.get(values["id"])
            if row:
                for key, value in values.items():
                    setattr(row, key, value)
            else:
                session.add(model(**values, is_active=True))

    await session.commit()
