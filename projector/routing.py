"""Channel routing for projector websockets."""

from django.urls import re_path

from . import consumers

websocket_urlpatterns = [
    re_path(r"^ws/festival/projector/$", consumers.ProjectorConsumer.as_asgi()),
]
