from .repository import InMemoryLeadRepository, LeadRepository
