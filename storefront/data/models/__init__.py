#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.slot import SlotModel

__all__ = ["SlotModel"]
