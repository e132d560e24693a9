from typing import List, Union

from django.urls import URLPattern, URLResolver

# Gatehouse has no HTTP views of its own; the sign-in pages that call
# into gproject.backends live in the surrounding web application.
urlpatterns: List[Union[URLPattern, URLResolver]] = []
