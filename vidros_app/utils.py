# vidros_app/utils.py
from datetime import datetime, time, timezone
from .errors import ValidationError

ESTADOS_FINAIS = ('cancelado', 'concluido')


def como_utc(valor):
    """SQLite devolve datetimes sem fuso; tratamos todos como UTC."""
    if valor is None:
        return None
    if valor.tzinfo is None:
        return valor.replace(tzinfo=timezone.utc)
    return valor.astimezone(timezone.utc)


def iso(valor):
    valor = como_utc(valor)
    return valor.isoformat() if valor else None


def tem_atividade_nova(status, ultima_atualizacao, ultima_visualizacao):
    """
    Indica se o pedido tem atualizações que o papel do utilizador ainda não viu.

    - pedidos cancelados ou concluídos nunca têm atividade nova;
    - sem nenhuma atualização também não;
    - com atualização mas nunca visto, tem;
    - caso contrário, compara a última atualização com a última visualização.
    """
    if status in ESTADOS_FINAIS:
        return False
    if ultima_atualizacao is None:
        return False
    if ultima_visualizacao is None:
        return True
    return como_utc(ultima_atualizacao) > como_utc(ultima_visualizacao)


def parse_data_filtro(valor, campo, fim_do_dia=False):
    """Converte o filtro de data da listagem; datas sem hora no fim do intervalo cobrem o dia todo."""
    if not valor:
        return None
    try:
        data = datetime.fromisoformat(valor.strip().replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'Data inválida em {campo}')
    if fim_do_dia and 'T' not in valor and ' ' not in valor.strip():
        data = datetime.combine(data.date(), time(23, 59, 59, 999999))
    return como_utc(data)
