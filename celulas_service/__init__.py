"""Serviço de gestão de células: autenticação, células, membros e registro de oração."""
