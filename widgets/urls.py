from django.urls import path

from . import views

app_name = "widgets"

urlpatterns = [
    path("d/<slug:slug>/", views.document_detail, name="document"),
    path("widgets/<slug:name>/", views.widget_options, name="base"),
    path("widgets/<slug:name>/modal/", views.widget_modal, name="modal"),
    path("widgets/<slug:name>/sanitize/", views.widget_sanitize, name="sanitize"),
]
