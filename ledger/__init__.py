"""Installment-sales ledger: customers, credit sales and their payment schedules."""
