from django.dispatch import Signal

# Sent after an order's courier dispatch succeeded and was saved. Args: order, waybill
shipment_dispatched = Signal()
