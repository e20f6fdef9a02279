from django.urls import path
from .views import (
    parts_issue_list_create,
    parts_issue_summary,
    parts_issue_detail,
    parts_issue_history,
    parts_issue_sc_approve,
    parts_issue_sc_reject,
    parts_issue_admin_approve,
    parts_issue_admin_reject,
    parts_issue_resend,
    parts_issue_dispatch,
    parts_issue_receive,
)

urlpatterns = [
    path('parts-issues/', parts_issue_list_create, name='parts-issue-list-create'),
    path('parts-issues/summary/', parts_issue_summary, name='parts-issue-summary'),
    path('parts-issues/<int:pk>/', parts_issue_detail, name='parts-issue-detail'),
    path('parts-issues/<int:pk>/history/', parts_issue_history, name='parts-issue-history'),
    path('parts-issues/<int:pk>/sc-approve/', parts_issue_sc_approve, name='parts-issue-sc-approve'),
    path('parts-issues/<int:pk>/sc-reject/', parts_issue_sc_reject, name='parts-issue-sc-reject'),
    path('parts-issues/<int:pk>/admin-approve/', parts_issue_admin_approve, name='parts-issue-admin-approve'),
    path('parts-issues/<int:pk>/admin-reject/', parts_issue_admin_reject, name='parts-issue-admin-reject'),
    path('parts-issues/<int:pk>/resend/', parts_issue_resend, name='parts-issue-resend'),
    path('parts-issues/<int:pk>/dispatch/', parts_issue_dispatch, name='parts-issue-dispatch'),
    path('parts-issues/<int:pk>/receive/', parts_issue_receive, name='parts-issue-receive'),
]
