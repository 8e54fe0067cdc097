from .builder import InvoiceBuilder, financial_year, format_invoice_number, split_gst

__all__ = ["InvoiceBuilder", "financial_year", "format_invoice_number", "split_gst"]
