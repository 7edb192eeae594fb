"""Socket.IO rooms for order, restaurant and rider channels.

Clients join rooms; the server only ever publishes. There is no replay and
no acknowledgement.
"""
import logging

import socketio

from . import config
from .notifier import order_channel, restaurant_channel, rider_channel

logger = logging.getLogger("chopnow.realtime")

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=[config.FRONTEND_URL])


@sio.event
async def connect(sid, environ, auth=None):
    logger.info(f"Socket connected: {sid}")


@sio.event
async def disconnect(sid, *args):
    logger.info(f"Socket disconnected: {sid}")


@sio.on("join-order-room")
async def join_order_room(sid, order_id):
    await sio.enter_room(sid, order_channel(order_id))


@sio.on("join-restaurant-room")
async def join_restaurant_room(sid, restaurant_id):
    await sio.enter_room(sid, restaurant_channel(restaurant_id))


@sio.on("join-rider-room")
async def join_rider_room(sid, rider_id):
    await sio.enter_room(sid, rider_channel(rider_id))
