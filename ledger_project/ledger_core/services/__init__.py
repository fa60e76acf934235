from .allocation import (Allocation, AllocationResult, allocate_excess,
                         list_outstanding_invoices)
from .balance import InvoiceSummary, calculate_status
from .journal import (ClosingResult, close_period, create_manual_entry,
                      post_entry, post_journal_entry, validate_chart)
from .ledger import (BalanceChange, append_transaction, correct_transaction,
                     find_balance_mismatches, get_company_account,
                     record_manual_transaction, replay_balance)
from .notes import NoteResult, issue_credit_note, issue_debit_note
from .payment import PaymentResult, process_payment
from .reconcile import (ReconcileResult, book_invoice, delete_invoice,
                        reconcile, update_invoice)
