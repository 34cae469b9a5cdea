from django.urls import path
from . import views

urlpatterns = [
    path('reports/outstanding-invoices/', views.outstanding_invoices, name='report-outstanding-invoices'),
    path('reports/dso/', views.days_sales_outstanding, name='report-dso'),
    path('reports/avg-invoice-value/', views.avg_invoice_value, name='report-avg-invoice-value'),
    path('reports/revenue-by-product/', views.revenue_by_product, name='report-revenue-by-product'),
    path('reports/revenue-trends/', views.revenue_trends, name='report-revenue-trends'),
    path('reports/job-metrics/', views.job_metrics, name='report-job-metrics'),
    path('reports/profit-margins/', views.profit_margins, name='report-profit-margins'),
    path('reports/dashboard-kpis/', views.dashboard_kpis, name='dashboard-kpis'),
]
