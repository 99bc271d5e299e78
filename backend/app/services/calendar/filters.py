from app.models import ExternalCalendarConnection, Publication


def should_sync(publication: Publication, connection: ExternalCalendarConnection) -> bool:
    """Apply the connection's campaign and platform allow-lists.

    An empty or missing list places no restriction on that dimension.
    """
    campaigns = connection.sync_campaigns
    if campaigns and publication.campaign_id not in campaigns:
        return False

    platforms = {p.lower() for p in connection.sync_platforms}
    if platforms and not {p.lower() for p in publication.platform_names} & platforms:
        return False

    return True
