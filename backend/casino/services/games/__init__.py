"""Slots, dice and crash.

``outcomes`` draws, ``payouts`` prices, ``crash`` runs the live round clock.
Nothing here touches the database or a socket.
"""
