"""
Testes do service de cadastro com banco e provedor em memória.
"""
import dataclasses
import hashlib

import pytest

from app.core.exceptions import (
    CampoObrigatorioError,
    DuplicateError,
    ExternalTimeoutError,
    ProviderAccountExistsError,
    ProviderError,
    ProviderErrorKind,
    SenhaFracaError,
    ValidationError,
    WriteError,
)
from app.models.tabelas import CONTATO, TipoCliente, TipoPessoa
from app.schemas.cadastro import CadastroRequest
from app.services.cadastro_service import (
    ADMIN_LOCAL,
    ADMIN_PROVEDOR,
    CLIENTE_LOCAL,
    CLIENTE_PROVEDOR,
    CadastroService,
)

TODAS_AS_TABELAS = ("contato", "endereco", "dados_usuario", "cliente", "admin")


def _request(payload: dict) -> CadastroRequest:
    return CadastroRequest.model_validate(payload)


def _vazio(store) -> bool:
    return all(not store.rows(t) for t in TODAS_AS_TABELAS)


def _deletes(store) -> list[str]:
    return [table for op, table in store.calls if op == "delete"]


# === Fluxos completos ===

@pytest.mark.asyncio
async def test_cliente_local_grava_todas_as_tabelas(service, store, cliente_payload):
    result = await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    contato = store.rows("contato")[0]
    endereco = store.rows("endereco")[0]
    usuario = store.rows("dados_usuario")[0]
    cliente = store.rows("cliente")[0]

    assert contato["email"] == "a@b.com"
    assert contato["celular"] == "11987654321"
    assert endereco["estado"] == "SP"
    assert endereco["cep"] == "01310100"
    assert endereco["complemento"] is None

    assert usuario["cpf_cnpj"] == "12345678909"
    assert usuario["razao_nome"] == "Ana Souza"
    assert usuario["usuario"] == "a"
    assert usuario["tipo_pessoa"] == "fisica"
    assert usuario["tipo_cliente"] == "cliente"
    assert usuario["id_contato"] == contato["id_contato"]
    assert usuario["id_endereco"] == endereco["id_endereco"]
    assert usuario["senha"] == hashlib.sha256(b"longenough1").hexdigest()
    assert "auth_user_id" not in usuario

    assert cliente["id_dados"] == usuario["id_dados"]
    assert cliente["id_admin"] == 7

    assert result.usuario_id == usuario["id_dados"]
    assert result.conta_id == cliente["id_cliente"]
    assert result.tipo_cliente == TipoCliente.CLIENTE
    assert result.email == "a@b.com"
    assert result.auth_user_id is None
    assert not store.rows("admin")


@pytest.mark.asyncio
async def test_admin_local_grava_admin(service, store, admin_payload):
    result = await service.registrar(_request(admin_payload()), ADMIN_LOCAL)

    usuario = store.rows("dados_usuario")[0]
    admin = store.rows("admin")[0]

    assert usuario["tipo_pessoa"] == "juridica"
    assert usuario["tipo_cliente"] == "admin"
    assert usuario["cpf_cnpj"] == "12345678000195"
    assert admin == {"id": admin["id"], "id_dados": usuario["id_dados"]}
    assert result.conta_id == admin["id"]
    assert not store.rows("cliente")


@pytest.mark.asyncio
async def test_admin_provedor_atualiza_metadata(service, store, provider, admin_payload):
    result = await service.registrar(_request(admin_payload()), ADMIN_PROVEDOR)

    contato = store.rows("contato")[0]
    endereco = store.rows("endereco")[0]
    usuario = store.rows("dados_usuario")[0]
    admin = store.rows("admin")[0]

    assert result.auth_user_id == "auth-1"
    assert result.needs_confirmation is True
    assert result.email == "contato@souzaadv.com.br"

    assert usuario["auth_user_id"] == "auth-1"
    assert "senha" not in usuario
    assert provider.accounts["auth-1"]["password"] == "senhaforte123"

    assert provider.metadata_updates == [
        (
            "auth-1",
            {
                "tipo_cliente": "admin",
                "razao_nome": "Souza Advocacia Ltda",
                "cpf_cnpj": "12345678000195",
                "area_atuacao": "Previdenciário",
                "id_contato": contato["id_contato"],
                "id_endereco": endereco["id_endereco"],
                "id_dados": usuario["id_dados"],
                "id_admin": admin["id"],
            },
        )
    ]


@pytest.mark.asyncio
async def test_cliente_provedor_envia_metadata_na_criacao(service, store, provider, cliente_payload):
    result = await service.registrar(_request(cliente_payload()), CLIENTE_PROVEDOR)

    assert result.auth_user_id == "auth-1"
    assert provider.accounts["auth-1"]["metadata"] == {
        "tipo_cliente": "cliente",
        "razao_nome": "Ana Souza",
        "cpf_cnpj": "12345678909",
    }
    assert provider.metadata_updates == []
    assert store.rows("dados_usuario")[0]["auth_user_id"] == "auth-1"


@pytest.mark.asyncio
async def test_email_de_login_distinto_do_contato(service, store, cliente_payload):
    payload = cliente_payload(
        dadosCredenciais={"emailLogin": " Login@Escritorio.com ", "senha": "longenough1"},
    )

    result = await service.registrar(_request(payload), CLIENTE_LOCAL)

    usuario = store.rows("dados_usuario")[0]
    assert usuario["email"] == "login@escritorio.com"
    assert usuario["usuario"] == "login"
    assert store.rows("contato")[0]["email"] == "a@b.com"
    assert result.email == "login@escritorio.com"


@pytest.mark.asyncio
async def test_contato_e_endereco_sao_gravados_em_paralelo(service, store, cliente_payload):
    store.delays[("insert", "contato")] = 0.05
    store.delays[("insert", "endereco")] = 0.05

    await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert store.max_in_flight >= 2


# === Validação ===

@pytest.mark.asyncio
async def test_senha_curta_nao_grava_nada(service, store, cliente_payload):
    payload = cliente_payload(dadosCredenciais={"senha": "short"})

    with pytest.raises(SenhaFracaError) as exc_info:
        await service.registrar(_request(payload), CLIENTE_LOCAL)

    assert exc_info.value.message == "Senha deve ter no mínimo 8 caracteres"
    assert store.calls == []


@pytest.mark.asyncio
async def test_senha_so_com_espacos_e_rejeitada(service, store, cliente_payload):
    payload = cliente_payload(dadosCredenciais={"senha": "          "})

    with pytest.raises(CampoObrigatorioError):
        await service.registrar(_request(payload), CLIENTE_LOCAL)

    assert store.calls == []


@pytest.mark.asyncio
async def test_sem_tamanho_minimo_aceita_senha_curta(service, store, cliente_payload):
    politica = dataclasses.replace(CLIENTE_LOCAL, min_senha=None)
    payload = cliente_payload(dadosCredenciais={"senha": "abc"})

    await service.registrar(_request(payload), politica)

    assert store.rows("dados_usuario")[0]["senha"] == hashlib.sha256(b"abc").hexdigest()


@pytest.mark.asyncio
async def test_cliente_exige_admin_logado(service, store, cliente_payload):
    payload = cliente_payload(idAdminLogado=None)

    with pytest.raises(CampoObrigatorioError) as exc_info:
        await service.registrar(_request(payload), CLIENTE_LOCAL)

    assert exc_info.value.field == "idAdminLogado"
    assert store.calls == []


@pytest.mark.asyncio
async def test_admin_exige_pessoa_juridica(service, store, cliente_payload):
    with pytest.raises(ValidationError) as exc_info:
        await service.registrar(_request(cliente_payload()), ADMIN_PROVEDOR)

    assert exc_info.value.field == "tipoPessoa"
    assert store.calls == []


@pytest.mark.asyncio
async def test_variante_com_provedor_exige_provedor(store, cliente_payload):
    service = CadastroService(store, provider=None, timeout=1.0)

    with pytest.raises(ProviderError) as exc_info:
        await service.registrar(_request(cliente_payload()), CLIENTE_PROVEDOR)

    assert exc_info.value.kind == ProviderErrorKind.UNAVAILABLE
    assert store.calls == []


# === Duplicidade ===

@pytest.mark.asyncio
async def test_email_duplicado_ignora_caixa(service, store, cliente_payload):
    store.seed("contato", email="a@b.com", celular="11999999999")
    payload = cliente_payload()
    payload["dadosContato"]["email"] = "  A@B.COM"

    with pytest.raises(DuplicateError) as exc_info:
        await service.registrar(_request(payload), CLIENTE_LOCAL)

    assert exc_info.value.message == "Este email já está cadastrado"
    assert store.writes() == []


@pytest.mark.asyncio
async def test_cpf_duplicado_ignora_formatacao(service, store, cliente_payload):
    store.seed("dados_usuario", cpf_cnpj="12345678909", email="outra@pessoa.com")
    payload = cliente_payload()
    payload["dadosCliente"]["cpf"] = "123 456 789 09"

    with pytest.raises(DuplicateError) as exc_info:
        await service.registrar(_request(payload), CLIENTE_LOCAL)

    assert exc_info.value.message == "Este CPF já está cadastrado"
    assert store.writes() == []


@pytest.mark.asyncio
async def test_cnpj_duplicado(service, store, admin_payload):
    store.seed("dados_usuario", cpf_cnpj="12345678000195", email="x@y.com", auth_user_id="auth-9")

    with pytest.raises(DuplicateError) as exc_info:
        await service.registrar(_request(admin_payload()), ADMIN_PROVEDOR)

    assert exc_info.value.message == "Este CNPJ já está cadastrado"


@pytest.mark.asyncio
async def test_provedor_ignora_usuario_sem_conta_vinculada(service, store, admin_payload):
    store.seed("dados_usuario", cpf_cnpj="12345678000195", email="contato@souzaadv.com.br")
    dados = _request(admin_payload())

    await service.verificar_duplicidade(dados, ADMIN_PROVEDOR)

    with pytest.raises(DuplicateError):
        await service.verificar_duplicidade(dados, ADMIN_LOCAL)


@pytest.mark.asyncio
async def test_consultas_de_duplicidade_sao_concorrentes(service, store, cliente_payload):
    store.delays[("select", "contato")] = 0.05
    store.delays[("select", "dados_usuario")] = 0.05

    await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert store.calls[:3].count(("select", "dados_usuario")) == 2
    assert store.max_in_flight >= 3


@pytest.mark.asyncio
async def test_violacao_de_unicidade_na_escrita_compensa(service, store, cliente_payload):
    """Outro cadastro venceu a corrida entre a consulta e o insert."""
    store.fail("insert", "dados_usuario", DuplicateError("Registro já cadastrado", "dados_usuario", "cpf_cnpj"))

    with pytest.raises(DuplicateError):
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert _vazio(store)
    assert _deletes(store) == ["endereco", "contato"]


# === Compensação ===

@pytest.mark.asyncio
async def test_falha_no_contato_compensa_endereco(service, store, cliente_payload):
    store.fail("insert", "contato")

    with pytest.raises(WriteError) as exc_info:
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert exc_info.value.table == "contato"
    assert _vazio(store)
    assert _deletes(store) == ["endereco"]


@pytest.mark.asyncio
async def test_falha_no_endereco_compensa_contato(service, store, cliente_payload):
    store.fail("insert", "endereco")

    with pytest.raises(WriteError):
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert _vazio(store)
    assert _deletes(store) == ["contato"]


@pytest.mark.asyncio
async def test_falha_no_cliente_compensa_em_ordem_inversa(service, store, cliente_payload):
    store.fail("insert", "cliente")

    with pytest.raises(WriteError) as exc_info:
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert exc_info.value.message == "Erro ao insert cliente: falha simulada"
    assert _vazio(store)
    assert _deletes(store) == ["dados_usuario", "endereco", "contato"]


@pytest.mark.asyncio
async def test_falha_na_compensacao_mantem_erro_original(service, store, cliente_payload):
    store.fail("insert", "cliente")
    store.fail("delete", "endereco")

    with pytest.raises(WriteError) as exc_info:
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert exc_info.value.table == "cliente"
    assert _deletes(store) == ["dados_usuario", "endereco", "contato"]
    assert not store.rows("contato")
    assert not store.rows("dados_usuario")
    assert len(store.rows("endereco")) == 1


@pytest.mark.asyncio
async def test_falha_no_admin_remove_conta_do_provedor(service, store, provider, admin_payload):
    store.fail("insert", "admin")

    with pytest.raises(WriteError):
        await service.registrar(_request(admin_payload()), ADMIN_PROVEDOR)

    assert _vazio(store)
    assert provider.deleted == ["auth-1"]
    assert provider.accounts == {}
    assert provider.metadata_updates == []


@pytest.mark.asyncio
async def test_politica_pode_manter_conta_do_provedor(service, store, provider, admin_payload):
    politica = dataclasses.replace(ADMIN_PROVEDOR, compensar_conta_provedor=False)
    store.fail("insert", "dados_usuario")

    with pytest.raises(WriteError):
        await service.registrar(_request(admin_payload()), politica)

    assert _vazio(store)
    assert provider.deleted == []
    assert "auth-1" in provider.accounts


@pytest.mark.asyncio
async def test_falha_na_metadata_compensa_tudo(service, store, provider, admin_payload):
    provider.fail(
        "update_account_metadata",
        ProviderError("Serviço indisponível", kind=ProviderErrorKind.UNAVAILABLE),
    )

    with pytest.raises(ProviderError):
        await service.registrar(_request(admin_payload()), ADMIN_PROVEDOR)

    assert _vazio(store)
    assert _deletes(store) == ["admin", "dados_usuario", "endereco", "contato"]
    assert provider.deleted == ["auth-1"]


@pytest.mark.asyncio
async def test_conta_existente_no_provedor_compensa_contato_e_endereco(
    service, store, provider, admin_payload
):
    await provider.create_account("contato@souzaadv.com.br", "outrasenha")

    with pytest.raises(ProviderAccountExistsError) as exc_info:
        await service.registrar(_request(admin_payload()), ADMIN_PROVEDOR)

    assert exc_info.value.kind == ProviderErrorKind.ALREADY_REGISTERED
    assert _vazio(store)
    assert _deletes(store) == ["endereco", "contato"]
    assert provider.deleted == []


@pytest.mark.asyncio
async def test_timeout_compensa_etapas_anteriores(store, provider, cliente_payload):
    service = CadastroService(store, provider, timeout=0.05)
    store.delays[("insert", "cliente")] = 1.0

    with pytest.raises(ExternalTimeoutError) as exc_info:
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert exc_info.value.step == "cliente"
    assert _vazio(store)


@pytest.mark.asyncio
async def test_timeout_na_consulta_de_duplicidade(store, provider, cliente_payload):
    service = CadastroService(store, provider, timeout=0.05)
    store.delays[("select", "contato")] = 1.0

    with pytest.raises(ExternalTimeoutError) as exc_info:
        await service.registrar(_request(cliente_payload()), CLIENTE_LOCAL)

    assert exc_info.value.step == "consultar:contato"
    assert store.writes() == []


def test_politicas_das_variantes():
    assert CLIENTE_LOCAL.tabela_conta.nome == "cliente"
    assert ADMIN_LOCAL.tabela_conta.nome == "admin"
    assert CLIENTE_PROVEDOR.requer_admin
    assert not ADMIN_PROVEDOR.requer_admin
    assert ADMIN_PROVEDOR.tipo_pessoa_fixo == TipoPessoa.JURIDICA
    assert CLIENTE_PROVEDOR.metadata_na_criacao
    assert ADMIN_PROVEDOR.atualizar_metadata


@pytest.mark.asyncio
async def test_remover_registro_inexistente_nao_falha(service, store):
    assert await service._remover(CONTATO)({"id_contato": 999}) == 0
    assert store.calls == [("delete", "contato")]


@pytest.mark.asyncio
async def test_senha_com_espacos_nas_pontas_conta_so_o_miolo(service, store, cliente_payload):
    payload = cliente_payload(dadosCredenciais={"senha": "       x"})

    with pytest.raises(SenhaFracaError):
        await service.registrar(_request(payload), CLIENTE_LOCAL)

    assert store.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("politica", [CLIENTE_LOCAL, CLIENTE_PROVEDOR, ADMIN_PROVEDOR, ADMIN_LOCAL])
async def test_cadastro_so_insere_consulta_e_remove(service, store, provider, cliente_payload, admin_payload, politica):
    """O banco só recebe inserts, consultas e deletes de compensação."""
    payload = cliente_payload() if politica.requer_admin else admin_payload()
    store.fail("insert", politica.tabela_conta.nome)

    with pytest.raises(WriteError):
        await service.registrar(_request(payload), politica)

    assert {op for op, _ in store.calls} == {"select", "insert", "delete"}
